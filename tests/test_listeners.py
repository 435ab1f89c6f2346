"""Tests for the listener registry and its dispatch rules."""

import logging

import pytest

from downcue import DownloadListener, RequestRejectedError
from downcue.listeners import CallbackListener, ListenerRegistry


class Recorder(DownloadListener):
    def __init__(self, name, calls):
        self.name = name
        self.calls = calls

    def on_request_submitted(self, request):
        self.calls.append((self.name, "submitted", request))

    def on_job_started(self, job):
        self.calls.append((self.name, "started", job))


class Vetoer(DownloadListener):
    def on_request_submitted(self, request):
        raise RequestRejectedError("not today")


class TestRegistry:
    """Tests for adding and removing listeners."""

    def test_add_and_remove(self):
        registry = ListenerRegistry()
        listener = DownloadListener()

        registry.add(listener)
        assert listener in registry
        assert len(registry) == 1

        assert registry.remove(listener) is True
        assert listener not in registry
        assert len(registry) == 0

    def test_remove_unknown_listener(self):
        registry = ListenerRegistry()
        assert registry.remove(DownloadListener()) is False

    def test_add_none_rejected(self):
        registry = ListenerRegistry()
        with pytest.raises(ValueError):
            registry.add(None)

    def test_same_listener_twice_is_called_twice(self):
        registry = ListenerRegistry()
        calls = []
        listener = Recorder("a", calls)
        registry.add(listener)
        registry.add(listener)

        registry.fire_job_started("job")
        assert len(calls) == 2

        registry.remove(listener)
        calls.clear()
        registry.fire_job_started("job")
        assert len(calls) == 1


class TestDispatch:
    """Tests for event dispatch."""

    def test_registration_order(self):
        registry = ListenerRegistry()
        calls = []
        for name in ("a", "b", "c"):
            registry.add(Recorder(name, calls))

        registry.fire_job_started("job")

        assert [c[0] for c in calls] == ["a", "b", "c"]

    def test_listener_removing_itself_during_dispatch(self):
        """The running dispatch still reaches every listener it started with."""
        registry = ListenerRegistry()
        calls = []

        class RemoveSelf(DownloadListener):
            def on_job_started(self, job):
                calls.append("self")
                registry.remove(self)

        registry.add(RemoveSelf())
        registry.add(Recorder("b", calls))

        registry.fire_job_started("job")
        assert calls[0] == "self"
        assert calls[1][0] == "b"

        calls.clear()
        registry.fire_job_started("job")
        assert [c[0] for c in calls] == ["b"]

    def test_listener_added_during_dispatch_sees_next_event(self):
        registry = ListenerRegistry()
        calls = []
        late = Recorder("late", calls)

        class AddOther(DownloadListener):
            def on_job_started(self, job):
                if late not in registry:
                    registry.add(late)

        registry.add(AddOther())
        registry.fire_job_started("job")
        assert calls == []

        registry.fire_job_started("job")
        assert [c[0] for c in calls] == ["late"]

    def test_veto_stops_iteration(self, caplog):
        """Listeners after the vetoing one never see the request."""
        registry = ListenerRegistry()
        calls = []
        registry.add(Recorder("before", calls))
        registry.add(Vetoer())
        registry.add(Recorder("after", calls))

        with caplog.at_level(logging.INFO, logger="downcue"):
            accepted = registry.fire_request_submitted("request")

        assert accepted is False
        assert [c[0] for c in calls] == ["before"]
        assert "not today" in caplog.text

    def test_no_veto_accepts(self):
        registry = ListenerRegistry()
        registry.add(DownloadListener())
        assert registry.fire_request_submitted("request") is True

    def test_other_exceptions_propagate(self):
        registry = ListenerRegistry()

        class Broken(DownloadListener):
            def on_request_submitted(self, request):
                raise RuntimeError("bug")

        registry.add(Broken())
        with pytest.raises(RuntimeError, match="bug"):
            registry.fire_request_submitted("request")


class TestCallbackListener:
    """Tests for function-based listeners."""

    def test_forwards_single_hook(self):
        seen = []
        listener = CallbackListener("on_job_completed", seen.append)

        listener.on_job_completed("job")
        listener.on_job_started("other")

        assert seen == ["job"]

    def test_unknown_hook_rejected(self):
        with pytest.raises(ValueError, match="Unknown listener hook"):
            CallbackListener("on_job_exploded", print)

    def test_non_hook_attribute_rejected(self):
        with pytest.raises(ValueError):
            CallbackListener("__init__", print)
