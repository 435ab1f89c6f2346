"""Content sources: where a download's bytes come from."""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, ContextManager, Iterator

import httpx

log = logging.getLogger(__name__)


class ContentSource(ABC):
    """
    A readable resource of known or unknown length.

    Subclasses must be safe to open once per job execution. The stream
    returned by ``open_stream`` only needs a ``read(n)`` method that returns
    ``b""`` at end of stream.
    """

    @abstractmethod
    def size(self) -> int | None:
        """Total number of bytes, or None if unknown."""
        ...

    @abstractmethod
    def open_stream(self) -> ContextManager[BinaryIO]:
        """Open the stream; the context manager releases it."""
        ...


class BytesSource(ContentSource):
    """In-memory content."""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def size(self) -> int | None:
        return len(self.data)

    def open_stream(self) -> ContextManager[BinaryIO]:
        return io.BytesIO(self.data)

    def __repr__(self) -> str:
        return f"BytesSource(size={len(self.data)})"


class FileSource(ContentSource):
    """Content read from a local file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def size(self) -> int | None:
        try:
            return self.path.stat().st_size
        except OSError:
            return None

    def open_stream(self) -> ContextManager[BinaryIO]:
        return open(self.path, "rb")

    def __repr__(self) -> str:
        return f"FileSource({str(self.path)!r})"


class _ResponseReader:
    """Adapts a streamed httpx response to ``read(n)``."""

    def __init__(self, response: httpx.Response):
        self._chunks = response.iter_bytes()
        self._buffer = bytearray()

    def read(self, size: int = -1) -> bytes:
        while size < 0 or len(self._buffer) < size:
            chunk = next(self._chunks, None)
            if chunk is None:
                break
            self._buffer.extend(chunk)
        if size < 0:
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data


class HttpSource(ContentSource):
    """
    Content fetched over HTTP(S).

    The size comes from a HEAD request's Content-Length header. Servers that
    reject HEAD or omit the header yield an unknown size.

    Args:
        url: Resource to download.
        client: Shared ``httpx.Client``. When omitted, a client is created
            per call and closed afterwards.
        headers: Extra request headers.
        timeout: Timeout in seconds for clients created here.
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.Client | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ):
        self.url = url
        self.client = client
        self.headers = headers or {}
        self.timeout = timeout

    @contextmanager
    def _client(self) -> Iterator[httpx.Client]:
        if self.client is not None:
            yield self.client
            return
        with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    def size(self) -> int | None:
        with self._client() as client:
            try:
                response = client.head(self.url, headers=self.headers, follow_redirects=True)
            except httpx.HTTPError as e:
                log.debug(f"HEAD request for {self.url} failed: {e}")
                return None
        if response.is_error:
            return None
        length = response.headers.get("Content-Length", "")
        return int(length) if length.isdigit() else None

    @contextmanager
    def open_stream(self) -> Iterator[_ResponseReader]:
        with self._client() as client:
            with client.stream("GET", self.url, headers=self.headers, follow_redirects=True) as response:
                response.raise_for_status()
                yield _ResponseReader(response)

    def __repr__(self) -> str:
        return f"HttpSource({self.url!r})"
