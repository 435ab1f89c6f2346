"""Core data models for downcue."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from downcue.exceptions import InvalidRequestError

if TYPE_CHECKING:
    from downcue.engine import DownloadEngine
    from downcue.sources import ContentSource

ProgressCallback = Callable[["Job", int, "int | None"], None]


def now_millis() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class JobStatus(str, Enum):
    """Possible states for a download job."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.CANCELLED, JobStatus.COMPLETED)


@dataclass(frozen=True)
class Request:
    """
    What to download and where to put it.

    ``target_file_name`` is resolved against the engine's target directory.
    Higher ``priority`` values leave the waiting queue first; equal
    priorities run in submission order.
    """

    target_file_name: str
    content_factory: ContentSource
    id: str | None = None
    title: str | None = None
    preview_image_factory: ContentSource | None = None
    priority: int = 0

    def __post_init__(self) -> None:
        if not self.target_file_name:
            raise InvalidRequestError("Property 'target_file_name' of request must not be empty")
        if self.content_factory is None:
            raise InvalidRequestError("Property 'content_factory' of request must not be None")

    def __str__(self) -> str:
        return (
            f"Request[id={self.id}, title={self.title}, "
            f"target_file_name={self.target_file_name}, priority={self.priority}]"
        )


@dataclass(frozen=True)
class JobSnapshot:
    """Immutable copy of a job's observable state at one instant."""

    id: str
    request: Request
    status: JobStatus
    schedule_time: int
    start_time: int | None
    end_time: int | None
    cancel_time: int | None
    cancel_reason: str | None
    error: BaseException | None
    target_file: Path | None
    bytes_written: int
    total_bytes: int | None

    @property
    def failed(self) -> bool:
        return self.status is JobStatus.COMPLETED and self.error is not None

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.COMPLETED and self.error is None

    @property
    def duration(self) -> int | None:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


@dataclass(eq=False)
class Job:
    """
    One admitted download.

    Status, timestamps and the error are written by the owning engine under
    its lock. ``bytes_written`` and ``total_bytes`` are written only by the
    worker thread running the transfer.
    """

    request: Request
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: JobStatus = JobStatus.SCHEDULED
    schedule_time: int = 0
    start_time: int | None = None
    end_time: int | None = None
    cancel_time: int | None = None
    cancel_reason: str | None = None
    error: BaseException | None = None
    target_file: Path | None = None
    bytes_written: int = 0
    total_bytes: int | None = None

    _engine: DownloadEngine | None = field(default=None, repr=False)
    _progress_listeners: tuple = field(default=(), repr=False)

    def __str__(self) -> str:
        return f"Job[id={self.id}, status={self.status.value}, request={self.request}]"

    @property
    def failed(self) -> bool:
        """True if the transfer ran and ended with an error."""
        return self.status is JobStatus.COMPLETED and self.error is not None

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.COMPLETED and self.error is None

    @property
    def duration(self) -> int | None:
        """Milliseconds between start and end, None while unfinished."""
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    def cancel(self, reason: str | None = None) -> bool:
        """Cancel this job through its engine. See ``DownloadEngine.cancel_job``."""
        if self._engine is None:
            return False
        return self._engine.cancel_job(self, reason)

    # --- Progress ---

    def add_progress_listener(self, callback: ProgressCallback) -> None:
        """
        Register ``callback(job, bytes_written, total_bytes)``.

        ``total_bytes`` is None when the source cannot tell its size.
        """
        self._progress_listeners = self._progress_listeners + (callback,)

    def remove_progress_listener(self, callback: ProgressCallback) -> bool:
        listeners = self._progress_listeners
        if callback not in listeners:
            return False
        remaining = list(listeners)
        remaining.remove(callback)
        self._progress_listeners = tuple(remaining)
        return True

    def fire_progress(self, bytes_written: int, total_bytes: int | None) -> None:
        self.bytes_written = bytes_written
        self.total_bytes = total_bytes
        for callback in self._progress_listeners:
            callback(self, bytes_written, total_bytes)

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            id=self.id,
            request=self.request,
            status=self.status,
            schedule_time=self.schedule_time,
            start_time=self.start_time,
            end_time=self.end_time,
            cancel_time=self.cancel_time,
            cancel_reason=self.cancel_reason,
            error=self.error,
            target_file=self.target_file,
            bytes_written=self.bytes_written,
            total_bytes=self.total_bytes,
        )
