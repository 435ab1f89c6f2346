"""Engine configuration."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BUFFER_SIZE = 1024 * 4  # 4 KiB
DEFAULT_NOTIFICATION_SIZE = 1024 * 16  # 16 KiB
DEFAULT_PROCESSOR_COUNT = 1


def require_positive(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Parameter '{name}' must be an integer, got {value!r}")
    if value < 1:
        raise ValueError(f"Parameter '{name}' must be larger than 0, got {value}")
    return value


@dataclass
class EngineConfig:
    """
    Tunables for a ``DownloadEngine``.

    Attributes:
        buffer_size: Bytes read and written per chunk.
        notification_size: Minimum bytes between two progress events. The
            effective granularity is ``max(buffer_size, notification_size)``.
        processor_count: Maximum number of jobs transferring at once.
    """

    buffer_size: int = DEFAULT_BUFFER_SIZE
    notification_size: int = DEFAULT_NOTIFICATION_SIZE
    processor_count: int = DEFAULT_PROCESSOR_COUNT

    def __post_init__(self) -> None:
        require_positive("buffer_size", self.buffer_size)
        require_positive("notification_size", self.notification_size)
        require_positive("processor_count", self.processor_count)
