"""The download engine: admission, scheduling and job execution."""

from __future__ import annotations

import dataclasses
import heapq
import itertools
import logging
import threading
import time
from pathlib import Path
from typing import Callable

from downcue.config import EngineConfig, require_positive
from downcue.exceptions import InvalidRequestError
from downcue.listeners import CallbackListener, DownloadListener, ListenerRegistry
from downcue.models import Job, JobStatus, Request, now_millis
from downcue.transfer import copy_content

log = logging.getLogger(__name__)


class _IdleListener(DownloadListener):
    """Sets ``event`` and removes itself once the engine has nothing left to do."""

    def __init__(self, engine: DownloadEngine, event: threading.Event):
        self.engine = engine
        self.event = event

    def _check_idle(self, job: Job) -> None:
        with self.engine._lock:
            if not self.engine._is_busy():
                self.engine.remove_listener(self)
                self.event.set()

    on_job_completed = _check_idle
    on_job_cancelled = _check_idle


class DownloadEngine:
    """
    Central manager for downloads.

    Requests go in through ``submit``; the engine decides whether a job
    starts right away or waits for a free slot. At most ``processor_count``
    jobs transfer at once, each on its own worker thread. Waiting jobs leave
    the queue by priority (higher first), then by submission order.

    All bookkeeping (waiting queue, active set, processor count) is guarded by
    a single reentrant lock, so listeners may call back into the engine.

    Example:
        engine = DownloadEngine("downloads", EngineConfig(processor_count=3))

        @engine.on_job_completed
        def done(job):
            print(job.target_file, job.error)

        engine.submit(Request("page.html", HttpSource("https://example.com")))
        engine.wait_until_all_downloads_complete()
    """

    def __init__(self, target_directory: str | Path, config: EngineConfig | None = None) -> None:
        if target_directory is None:
            raise ValueError("Parameter 'target_directory' must not be None")
        self._target_directory = Path(target_directory).absolute()
        self._config = dataclasses.replace(config) if config else EngineConfig()
        self._listeners = ListenerRegistry()

        # Heap entries: (-priority, schedule_time, sequence, job)
        self._waiting: list[tuple[int, int, int, Job]] = []
        self._active: list[Job] = []
        self._workers: list[threading.Thread] = []
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    # --- Properties ---

    @property
    def target_directory(self) -> Path:
        return self._target_directory

    @property
    def processor_count(self) -> int:
        return self._config.processor_count

    @property
    def buffer_size(self) -> int:
        return self._config.buffer_size

    @buffer_size.setter
    def buffer_size(self, value: int) -> None:
        self._config.buffer_size = require_positive("buffer_size", value)

    @property
    def notification_size(self) -> int:
        return self._config.notification_size

    @notification_size.setter
    def notification_size(self, value: int) -> None:
        self._config.notification_size = require_positive("notification_size", value)

    # --- Submission ---

    def submit(self, request: Request) -> Job | None:
        """
        Submit a download request.

        Every listener sees the request first and may veto it. An accepted
        request becomes a job that either starts immediately or waits in the
        queue for a free slot.

        Returns:
            The new job, or None if a listener rejected the request.

        Raises:
            InvalidRequestError: If the request or its target file name or
                content source is missing.
        """
        if request is None:
            raise InvalidRequestError("Parameter 'request' must not be None")
        if not getattr(request, "target_file_name", None):
            raise InvalidRequestError("Property 'target_file_name' of request must not be empty")
        if getattr(request, "content_factory", None) is None:
            raise InvalidRequestError("Property 'content_factory' of request must not be None")

        if not self._listeners.fire_request_submitted(request):
            return None

        log.info(f"Accepted request: {request}")
        job = Job(request=request, schedule_time=now_millis(), _engine=self)
        with self._lock:
            if not self._start_job(job):
                heapq.heappush(
                    self._waiting,
                    (-request.priority, job.schedule_time, next(self._sequence), job),
                )
                self._listeners.fire_job_scheduled(job)
        return job

    def list_active_jobs(self) -> tuple[Job, ...]:
        """Jobs currently transferring. The result does not follow later changes."""
        with self._lock:
            return tuple(self._active)

    def list_waiting_jobs(self) -> tuple[Job, ...]:
        """Jobs waiting for a slot, in the order they will be started."""
        with self._lock:
            return tuple(entry[-1] for entry in sorted(self._waiting))

    def clear_waiting_jobs(self) -> tuple[Job, ...]:
        """
        Cancel every waiting job and return them in dequeue order.

        Each removed job fires ``on_job_cancelled``. Active jobs are untouched.
        """
        with self._lock:
            removed = tuple(entry[-1] for entry in sorted(self._waiting))
            self._waiting.clear()
            cancel_time = now_millis()
            for job in removed:
                job.status = JobStatus.CANCELLED
                job.cancel_time = cancel_time
                job.cancel_reason = "Cleared from waiting queue"
                self._listeners.fire_job_cancelled(job)
            if removed:
                log.debug(f"Cleared {len(removed)} waiting jobs")
            return removed

    def is_busy(self) -> bool:
        """True if any job is waiting or active."""
        with self._lock:
            return self._is_busy()

    def _is_busy(self) -> bool:
        return bool(self._waiting) or bool(self._active)

    def join(self, timeout: float | None = None) -> bool:
        """
        Join every worker thread started so far.

        Workers of cancelled jobs leave the active set before they return, so
        an idle engine may still have a worker deleting a partial file or
        firing its completed event. Call this after
        ``wait_until_all_downloads_complete`` to wait for those as well.

        Args:
            timeout: Max seconds to wait in total. None = wait forever.

        Returns:
            True if all workers finished, False if the timeout expired first.
        """
        with self._lock:
            workers = list(self._workers)
        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in workers:
            if worker is threading.current_thread():
                continue
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(remaining)
            if worker.is_alive():
                return False
        return True

    def wait_until_all_downloads_complete(self, timeout: float | None = None) -> bool:
        """
        Block until no job is waiting or active.

        Args:
            timeout: Max seconds to wait. None = wait forever.

        Returns:
            True once the engine is idle, False if the timeout expired first.
        """
        done = threading.Event()
        listener = _IdleListener(self, done)
        with self._lock:
            if not self._is_busy():
                return True
            self.add_listener(listener)
        try:
            return done.wait(timeout)
        finally:
            self.remove_listener(listener)

    # --- Status transitions ---

    def _start_job(self, job: Job) -> bool:
        """Move ``job`` into the active set if a slot is free. Caller holds the lock."""
        if len(self._active) >= self._config.processor_count:
            return False

        self._remove_waiting(job)
        job.start_time = now_millis()
        job.status = JobStatus.ACTIVE
        self._active.append(job)

        log.debug(f"Dispatching job: {job}")
        worker = threading.Thread(target=self._run_job, args=(job,), name=f"downcue-{job.id}")
        self._workers = [w for w in self._workers if w.is_alive()]
        self._workers.append(worker)
        worker.start()
        return True

    def _remove_waiting(self, job: Job) -> bool:
        for index, entry in enumerate(self._waiting):
            if entry[-1] is job:
                self._waiting.pop(index)
                heapq.heapify(self._waiting)
                return True
        return False

    def cancel_job(self, job: Job, reason: str | None = None) -> bool:
        """
        Cancel a waiting or active job.

        A running transfer notices the cancellation before its next chunk and
        deletes the partial file.

        Returns:
            True if the job is now cancelled (including when it already was),
            False if the engine no longer holds it (e.g. it already completed).
        """
        with self._lock:
            if job.status is JobStatus.CANCELLED:
                return True

            if job in self._active:
                self._active.remove(job)
            elif not self._remove_waiting(job):
                return False

            log.debug(f"Cancelling job {job} with reason: {reason}")
            job.status = JobStatus.CANCELLED
            job.cancel_time = now_millis()
            job.cancel_reason = reason
            self._listeners.fire_job_cancelled(job)
            self._check_waiting_jobs()
            return True

    def _check_waiting_jobs(self) -> None:
        """Fill free slots from the front of the waiting queue. Caller holds the lock."""
        free_slots = self._config.processor_count - len(self._active)
        if free_slots <= 0:
            return
        next_jobs = [
            heapq.heappop(self._waiting)[-1]
            for _ in range(min(free_slots, len(self._waiting)))
        ]
        for job in next_jobs:
            self._start_job(job)

    def set_processor_count(self, processor_count: int) -> None:
        """
        Change how many jobs may transfer at once.

        Raising the count starts waiting jobs right away. Lowering it never
        interrupts running jobs; it only holds back new ones.
        """
        require_positive("processor_count", processor_count)
        with self._lock:
            old_count = self._config.processor_count
            if old_count == processor_count:
                return
            log.debug(f"Updating processor count from {old_count} to {processor_count}")
            self._config.processor_count = processor_count
            if processor_count > old_count:
                self._check_waiting_jobs()
        self._listeners.fire_processor_count_updated(processor_count)

    # --- Job execution ---

    def _run_job(self, job: Job) -> None:
        """Worker thread body."""
        error = None
        try:
            log.debug(f"Running job: {job}")
            self._run_job_transfer(job)
        except Exception as e:
            error = e
            log.info(f"Exception during job execution: {job}", exc_info=True)
        finally:
            with self._lock:
                job.end_time = now_millis()
                job.error = error
                if job.status is JobStatus.ACTIVE:
                    job.status = JobStatus.COMPLETED
                if job in self._active:
                    self._active.remove(job)
                self._check_waiting_jobs()

            if job.succeeded:
                log.info(f"Job completed: {job} in {job.duration} ms")
            self._listeners.fire_job_completed(job)

    def _run_job_transfer(self, job: Job) -> Path:
        target_path = self._target_directory / job.request.target_file_name
        target_path.parent.mkdir(parents=True, exist_ok=True)
        job.target_file = target_path
        self._listeners.fire_job_started(job)

        if job.status is JobStatus.ACTIVE:
            copy_content(job, target_path, self.buffer_size, self.notification_size)
        return target_path

    # --- Listeners ---

    def add_listener(self, listener: DownloadListener) -> None:
        self._listeners.add(listener)

    def remove_listener(self, listener: DownloadListener) -> bool:
        return self._listeners.remove(listener)

    def _register_callback(self, hook: str, func: Callable) -> Callable:
        self._listeners.add(CallbackListener(hook, func))
        return func

    def on_request_submitted(self, func):
        """
        Decorator to register a submission check.

        Raise ``RequestRejectedError`` from the function to veto a request.

        Example:
            @engine.on_request_submitted
            def only_pdfs(request):
                if not request.target_file_name.endswith(".pdf"):
                    raise RequestRejectedError("Only PDFs please")
        """
        return self._register_callback("on_request_submitted", func)

    def on_processor_count_updated(self, func):
        """Decorator: called with the new processor count after a change."""
        return self._register_callback("on_processor_count_updated", func)

    def on_job_scheduled(self, func):
        """Decorator: called with a job that had to wait for a slot."""
        return self._register_callback("on_job_scheduled", func)

    def on_job_started(self, func):
        """
        Decorator to register a start callback.

        Called on the worker thread once the target path is known, right
        before bytes start moving. A good place to attach progress listeners.

        Example:
            @engine.on_job_started
            def track(job):
                job.add_progress_listener(lambda job, done, total: print(done, total))
        """
        return self._register_callback("on_job_started", func)

    def on_job_completed(self, func):
        """Decorator: called once per executed job, success or failure."""
        return self._register_callback("on_job_completed", func)

    def on_job_cancelled(self, func):
        """Decorator: called when a job is cancelled."""
        return self._register_callback("on_job_cancelled", func)
