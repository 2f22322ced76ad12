from oracle_core.infrastructure.storage.session_store import DisabledSessionStorage
from oracle_core.signals.channel import PROVIDER_REPORT_KEY, SignalChannel


def test_consume_is_read_and_clear(storage, clock):
    channel = SignalChannel(storage, clock=clock)
    channel.publish({"type": "provider_report_tap", "provider": "ebay"})
    event = channel.consume()
    assert event.payload["provider"] == "ebay"
    assert event.timestamp == int(clock.now * 1000)
    assert channel.consume() is None
    assert storage.get_item(PROVIDER_REPORT_KEY) is None


def test_last_write_wins(storage, clock):
    channel = SignalChannel(storage, clock=clock)
    channel.publish({"n": 1})
    channel.publish({"n": 2})
    assert channel.consume().payload == {"n": 2}


def test_stale_event_is_cleared_and_ignored(storage, clock):
    channel = SignalChannel(storage, max_age_seconds=60, clock=clock)
    channel.publish({"n": 1})
    clock.advance(61)
    assert channel.consume() is None
    assert storage.get_item(PROVIDER_REPORT_KEY) is None


def test_disabled_storage_is_empty(clock):
    channel = SignalChannel(DisabledSessionStorage(), clock=clock)
    channel.publish({"n": 1})
    assert channel.consume() is None
