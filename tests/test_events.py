"""
Tests for per-component observer channels.
"""

from unittest.mock import Mock

from events import EventChannel


class TestEventChannel:
    def test_delivers_in_subscription_order(self):
        channel = EventChannel("test")
        received = []
        channel.subscribe(lambda payload: received.append(("first", payload)))
        channel.subscribe(lambda payload: received.append(("second", payload)))

        channel.emit(7)

        assert received == [("first", 7), ("second", 7)]

    def test_duplicate_subscription_ignored(self):
        channel = EventChannel("test")
        callback = Mock()
        channel.subscribe(callback)
        channel.subscribe(callback)

        channel.emit("x")

        callback.assert_called_once_with("x")
        assert channel.subscriber_count == 1

    def test_unsubscribe_callable(self):
        channel = EventChannel("test")
        callback = Mock()
        unsubscribe = channel.subscribe(callback)

        unsubscribe()
        unsubscribe()
        channel.emit("x")

        callback.assert_not_called()
        assert channel.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self, caplog):
        channel = EventChannel("test")
        failing = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        channel.subscribe(failing)
        channel.subscribe(healthy)

        channel.emit(1)

        healthy.assert_called_once_with(1)
        assert "Subscriber" in caplog.text

    def test_subscriber_may_unsubscribe_during_emit(self):
        channel = EventChannel("test")
        later = Mock()
        unsubscribe_holder = {}

        def once(payload):
            unsubscribe_holder["fn"]()

        unsubscribe_holder["fn"] = channel.subscribe(once)
        channel.subscribe(later)

        channel.emit(1)
        channel.emit(2)

        assert later.call_count == 2
        assert channel.subscriber_count == 1

    def test_clear(self):
        channel = EventChannel("test")
        channel.subscribe(Mock())
        channel.clear()
        assert channel.subscriber_count == 0
        assert "subscribers=0" in repr(channel)
