"""downcue - A download queue with bounded concurrency and lifecycle events."""

from downcue.config import EngineConfig
from downcue.engine import DownloadEngine
from downcue.exceptions import DowncueError, InvalidRequestError, RequestRejectedError
from downcue.listeners import DownloadListener
from downcue.models import Job, JobSnapshot, JobStatus, Request
from downcue.sources import BytesSource, ContentSource, FileSource, HttpSource

__version__ = "0.2.0"
__all__ = [
    "DownloadEngine",
    "EngineConfig",
    "Request",
    "Job",
    "JobSnapshot",
    "JobStatus",
    "DownloadListener",
    "ContentSource",
    "BytesSource",
    "FileSource",
    "HttpSource",
    "DowncueError",
    "InvalidRequestError",
    "RequestRejectedError",
]
