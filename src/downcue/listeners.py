"""Listener protocol and registry for engine events."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Iterator

from downcue.exceptions import RequestRejectedError

if TYPE_CHECKING:
    from downcue.models import Job, Request

log = logging.getLogger(__name__)


class DownloadListener:
    """
    Observer of engine events. Every hook is optional.

    Only ``on_request_submitted`` has a return contract: raise
    ``RequestRejectedError`` to veto the request. All other hooks are plain
    notifications and are called synchronously on the thread that raised the
    event.
    """

    def on_request_submitted(self, request: Request) -> None:
        pass

    def on_processor_count_updated(self, processor_count: int) -> None:
        pass

    def on_job_scheduled(self, job: Job) -> None:
        pass

    def on_job_started(self, job: Job) -> None:
        pass

    def on_job_completed(self, job: Job) -> None:
        pass

    def on_job_cancelled(self, job: Job) -> None:
        pass


class CallbackListener(DownloadListener):
    """Forwards a single hook to a plain function."""

    def __init__(self, hook: str, func: Callable):
        if not hasattr(DownloadListener, hook) or not hook.startswith("on_"):
            raise ValueError(f"Unknown listener hook: {hook}")
        self.hook = hook
        self.func = func
        setattr(self, hook, func)

    def __repr__(self) -> str:
        name = getattr(self.func, "__name__", repr(self.func))
        return f"CallbackListener({self.hook}={name})"


class ListenerRegistry:
    """
    Listeners in registration order.

    The registry is copy-on-write: every dispatch iterates the tuple that was
    current when it began, so listeners may add or remove listeners
    (including themselves) from inside a hook.
    """

    def __init__(self) -> None:
        self._listeners: tuple[DownloadListener, ...] = ()
        self._lock = threading.Lock()

    def __iter__(self) -> Iterator[DownloadListener]:
        return iter(self._listeners)

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, listener: object) -> bool:
        return listener in self._listeners

    def add(self, listener: DownloadListener) -> None:
        if listener is None:
            raise ValueError("Parameter 'listener' must not be None")
        log.debug(f"Adding listener: {listener!r}")
        with self._lock:
            self._listeners = self._listeners + (listener,)

    def remove(self, listener: DownloadListener) -> bool:
        with self._lock:
            if listener not in self._listeners:
                return False
            remaining = list(self._listeners)
            remaining.remove(listener)
            self._listeners = tuple(remaining)
            return True

    # --- Dispatch ---

    def fire_request_submitted(self, request: Request) -> bool:
        """Offer the request to every listener. Returns False if one vetoes."""
        for listener in self._listeners:
            try:
                listener.on_request_submitted(request)
            except RequestRejectedError as e:
                log.info(
                    f"Request rejected by listener {type(listener).__name__}: "
                    f"(Request: {request}, Message: {e})"
                )
                return False
        return True

    def fire_processor_count_updated(self, processor_count: int) -> None:
        for listener in self._listeners:
            listener.on_processor_count_updated(processor_count)

    def fire_job_scheduled(self, job: Job) -> None:
        for listener in self._listeners:
            listener.on_job_scheduled(job)

    def fire_job_started(self, job: Job) -> None:
        for listener in self._listeners:
            listener.on_job_started(job)

    def fire_job_completed(self, job: Job) -> None:
        for listener in self._listeners:
            listener.on_job_completed(job)

    def fire_job_cancelled(self, job: Job) -> None:
        for listener in self._listeners:
            listener.on_job_cancelled(job)
