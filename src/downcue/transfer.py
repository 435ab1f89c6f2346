"""Streams a job's content into its target file."""

from __future__ import annotations

import logging
from pathlib import Path

from downcue.models import Job, JobStatus

log = logging.getLogger(__name__)


def _delete_quietly(path: Path, context: str) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.debug(f"Cannot delete target file ({context}) at {path}: {e}")


def _normalize_size(size: int | None) -> int | None:
    if size is None or size < 0:
        return None
    return size


def copy_content(job: Job, target_path: Path, buffer_size: int, notification_size: int) -> int:
    """
    Copy the job's content source into ``target_path``.

    Reads ``buffer_size`` bytes at a time and stops early once the job is no
    longer ACTIVE. Progress fires at zero, roughly every
    ``max(buffer_size, notification_size)`` bytes, and once more with the
    final count. A cancelled or failed transfer leaves no file behind;
    exceptions are re-raised after cleanup.

    Returns:
        Number of bytes written.
    """
    source = job.request.content_factory
    total_written = 0
    target_opened = False

    try:
        total_bytes = _normalize_size(source.size())
        with source.open_stream() as in_stream:
            with open(target_path, "wb") as out_stream:
                target_opened = True
                block_size = max(buffer_size, notification_size)
                next_notification = block_size
                job.fire_progress(0, total_bytes)

                while job.status is JobStatus.ACTIVE:
                    chunk = in_stream.read(buffer_size)
                    if not chunk:
                        break
                    out_stream.write(chunk)
                    total_written += len(chunk)
                    if total_written > next_notification:
                        next_notification += block_size
                        job.fire_progress(total_written, total_bytes)

                job.fire_progress(total_written, total_bytes)
                out_stream.flush()
    except Exception as e:
        log.warning(f"Error during file transfer [{job}]: {e}")
        # An existing file is only touched once we opened it for writing
        if target_opened:
            _delete_quietly(target_path, "after error during transfer")
        raise

    if job.status is not JobStatus.ACTIVE:
        _delete_quietly(target_path, "after cancel")

    return total_written
