"""Tests for the event bus."""

from vvm.events import (
    EventBus,
    EventRecorder,
    FlagsChanged,
    Message,
    RegisterChanged,
    RunState,
    RunStateChanged,
    event_to_dict,
)


class TestEventBus:
    """Publish/subscribe behavior."""

    def test_publish_without_subscribers(self):
        EventBus().publish(RegisterChanged("PC", 1))

    def test_subscribers_receive_in_order(self):
        bus = EventBus()
        recorder = EventRecorder()
        bus.subscribe(recorder)
        bus.publish(RegisterChanged("PC", 1))
        bus.publish(FlagsChanged(True, False))
        assert recorder.events == [RegisterChanged("PC", 1), FlagsChanged(True, False)]

    def test_filtered_subscription(self):
        bus = EventBus()
        recorder = EventRecorder()
        bus.subscribe(recorder, Message)
        bus.publish(RegisterChanged("PC", 1))
        bus.publish(Message("info", "hello"))
        assert recorder.events == [Message("info", "hello")]

    def test_unsubscribe(self):
        bus = EventBus()
        recorder = EventRecorder()
        unsubscribe = bus.subscribe(recorder)
        unsubscribe()
        unsubscribe()
        bus.publish(RegisterChanged("PC", 1))
        assert recorder.events == []

    def test_failing_subscriber_is_isolated(self, caplog):
        """A subscriber that raises does not stop delivery to others."""
        bus = EventBus()
        recorder = EventRecorder()

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(recorder)
        bus.publish(RegisterChanged("AC", 3))
        assert recorder.events == [RegisterChanged("AC", 3)]
        assert "failed" in caplog.text

    def test_event_to_dict(self):
        assert event_to_dict(RegisterChanged("MAR", 4)) == {
            "event": "RegisterChanged", "name": "MAR", "value": 4,
        }
        assert event_to_dict(RunStateChanged(RunState.ERRORED)) == {
            "event": "RunStateChanged", "state": "errored",
        }

    def test_terminal_states(self):
        assert RunState.HALTED.is_terminal
        assert RunState.ERRORED.is_terminal
        assert not RunState.READY.is_terminal
        assert not RunState.RUNNING.is_terminal
