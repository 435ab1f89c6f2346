"""Shared fixtures and helpers for downcue tests."""

import io
import threading
import time

import pytest

import downcue
from downcue import ContentSource, DownloadListener

GATE_TIMEOUT = 5.0


class _GatedStream(io.RawIOBase):
    def __init__(self, source):
        super().__init__()
        self._source = source
        self._position = 0

    def readable(self):
        return True

    def read(self, size=-1):
        src = self._source
        if self._position > 0:
            # Hold every read after the first until the test lets go
            src.release.wait(GATE_TIMEOUT)
        if src.fail_after is not None and self._position >= src.fail_after:
            raise IOError("Simulated read failure")
        data = src.data[self._position:self._position + size]
        self._position += len(data)
        src.started.set()
        return data


class GatedSource(ContentSource):
    """
    Returns the first chunk right away, then blocks until ``release`` is set.

    ``started`` is set once the first chunk was handed out, i.e. the transfer
    is really in flight.
    """

    def __init__(self, data=b"x" * 50_000, known_size=True, fail_after=None):
        self.data = data
        self.known_size = known_size
        self.fail_after = fail_after
        self.started = threading.Event()
        self.release = threading.Event()
        self.opened = 0

    def size(self):
        return len(self.data) if self.known_size else None

    def open_stream(self):
        self.opened += 1
        return _GatedStream(self)


class FailingSource(ContentSource):
    """Yields ``good_bytes`` and then raises on the next read."""

    def __init__(self, good_bytes=8192, fail_on_open=False):
        self.inner = GatedSource(b"y" * (good_bytes * 2), fail_after=good_bytes)
        self.inner.release.set()
        self.fail_on_open = fail_on_open

    def size(self):
        return self.inner.size()

    def open_stream(self):
        if self.fail_on_open:
            raise IOError("Cannot open source")
        return self.inner.open_stream()


class RecordingListener(DownloadListener):
    """Records every engine event as (name, payload) in arrival order."""

    def __init__(self):
        self.events = []
        self._cond = threading.Condition()

    def _record(self, name, payload):
        with self._cond:
            self.events.append((name, payload))
            self._cond.notify_all()

    def on_request_submitted(self, request):
        self._record("submitted", request)

    def on_processor_count_updated(self, processor_count):
        self._record("processor_count", processor_count)

    def on_job_scheduled(self, job):
        self._record("scheduled", job)

    def on_job_started(self, job):
        self._record("started", job)

    def on_job_completed(self, job):
        self._record("completed", job)

    def on_job_cancelled(self, job):
        self._record("cancelled", job)

    def names(self):
        with self._cond:
            return [name for name, _ in self.events]

    def names_for(self, job):
        with self._cond:
            return [name for name, payload in self.events if payload is job]

    def count(self, name, job=None):
        with self._cond:
            return sum(
                1 for n, payload in self.events
                if n == name and (job is None or payload is job)
            )

    def wait_for(self, name, count=1, job=None, timeout=GATE_TIMEOUT):
        with self._cond:
            return self._cond.wait_for(
                lambda: sum(
                    1 for n, payload in self.events
                    if n == name and (job is None or payload is job)
                ) >= count,
                timeout,
            )


def wait_until(predicate, timeout=GATE_TIMEOUT):
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class GateFactory:
    """Creates GatedSources and remembers them so they can all be released."""

    def __init__(self):
        self.sources = []

    def __call__(self, *args, **kwargs):
        source = GatedSource(*args, **kwargs)
        self.sources.append(source)
        return source

    def release_all(self):
        for source in self.sources:
            source.release.set()


@pytest.fixture
def gated():
    factory = GateFactory()
    yield factory
    factory.release_all()


@pytest.fixture
def recorder():
    return RecordingListener()


@pytest.fixture
def engine(tmp_path, recorder, gated):
    """A single-slot engine writing to tmp_path/out with a recorder attached."""
    e = downcue.DownloadEngine(tmp_path / "out")
    e.add_listener(recorder)
    yield e
    e.clear_waiting_jobs()
    gated.release_all()
    e.wait_until_all_downloads_complete(timeout=GATE_TIMEOUT)
    e.join(timeout=GATE_TIMEOUT)
