import pytest

from oracle_core.api.service import OracleController
from oracle_core.config.settings import OracleSettings
from oracle_core.domain.exceptions import NetworkError
from oracle_core.infrastructure.notify import RecordingNotifier
from oracle_core.infrastructure.storage.session_store import MemorySessionStorage


def _controller(backend, clock, **overrides):
    cfg = OracleSettings(access_token="tok", viewport_width=800, **overrides)
    return OracleController(
        settings=cfg,
        backend=backend,
        storage=MemorySessionStorage(),
        notifier=RecordingNotifier(),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_provider_report_rides_along_once(backend, clock):
    ctl = _controller(backend, clock)
    ctl.publish_provider_report("ebay", "Zelda", provider_value=50, consensus_value=60)
    backend.queue("chat", {"response": "ok"}, {"response": "ok again"})

    await ctl.send_message("what about it")
    await ctl.send_message("and now")

    first, second = backend.calls_to("chat")
    assert first["providerReportEvent"]["itemName"] == "Zelda"
    assert first["clientContext"]["deviceType"] == "tablet"
    assert "providerReportEvent" not in second


@pytest.mark.asyncio
async def test_stale_provider_report_is_ignored(backend, clock):
    ctl = _controller(backend, clock, signal_max_age=30)
    ctl.publish_provider_report("ebay", "Zelda")
    clock.advance(31)
    await ctl.send_message("hello")
    assert "providerReportEvent" not in backend.calls_to("chat")[0]


@pytest.mark.asyncio
async def test_offline_queue_replay_appends_late_reply(backend, clock):
    ctl = _controller(backend, clock)
    ctl.session.hydrate("c1", [])
    backend.queue("chat", NetworkError(code="NETWORK_ERROR", message="offline"))
    await ctl.send_message("are you there?")
    assert len(ctl.offline_queue) == 1

    backend.queue("replay", {
        "response": "Back online, here's my answer.",
        "tier": {"current": "free", "messagesRemaining": 9},
    })
    report = await ctl.replay_offline_queue()

    assert len(report.delivered) == 1
    assert len(ctl.offline_queue) == 0
    assert ctl.session.messages[-1].content == "Back online, here's my answer."
    assert ctl.cached_tier().messages_remaining == 9
