"""Synthetic content for simulated downloads."""

from __future__ import annotations

import io
import random
import time
from typing import BinaryIO, ContextManager

from downcue.sources import ContentSource


class _SimulatedStream(io.RawIOBase):
    def __init__(self, source: SimulatedSource):
        super().__init__()
        self._source = source
        self._position = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        src = self._source
        remaining = src.total - self._position
        if remaining <= 0:
            return b""
        if size < 0 or size > remaining:
            size = remaining

        if src.latency > 0:
            jitter = src.jitter
            time.sleep(src.latency * random.uniform(1 - jitter, 1 + jitter))

        if src.fail_at is not None and self._position + size > src.fail_at:
            raise IOError(f"Simulated transfer error at byte {src.fail_at}")

        self._position += size
        return b"\0" * size


class SimulatedSource(ContentSource):
    """
    Produces ``total`` zero bytes, sleeping ``latency`` seconds per read.

    Args:
        total: Number of bytes the stream yields.
        latency: Base delay per ``read`` call in seconds.
        jitter: Latency variance as a fraction, e.g. 0.2 = ±20%.
        fail_at: Raise ``IOError`` once the stream would pass this offset.
        known_size: Report ``total`` from ``size()``; otherwise unknown.
    """

    def __init__(
        self,
        total: int,
        *,
        latency: float = 0.0,
        jitter: float = 0.0,
        fail_at: int | None = None,
        known_size: bool = True,
    ):
        self.total = total
        self.latency = latency
        self.jitter = jitter
        self.fail_at = fail_at
        self.known_size = known_size

    def size(self) -> int | None:
        return self.total if self.known_size else None

    def open_stream(self) -> ContextManager[BinaryIO]:
        return _SimulatedStream(self)

    def __repr__(self) -> str:
        return f"SimulatedSource(total={self.total}, fail_at={self.fail_at})"
