import asyncio

import pytest

from oracle_core.agents.lifecycle import SWITCH_BUSY_NOTICE
from oracle_core.domain.exceptions import ApiError, NetworkError
from oracle_core.domain.models import ChatMessage


def _detail(cid, *contents):
    return {"conversation": {
        "id": cid,
        "messages": [{"role": "assistant", "content": c, "timestamp": 1} for c in contents],
    }}


@pytest.mark.asyncio
async def test_resume_most_recent_hydrates_without_greeting(lifecycle, backend, session):
    backend.queue("list_conversations", {"conversations": [{"id": "c2", "title": "Zelda"}, {"id": "c1", "title": "Old"}]})
    backend.queue("get_conversation", _detail("c2", "Welcome back."))

    assert await lifecycle.resume_most_recent() is None

    assert backend.calls_to("get_conversation") == ["c2"]
    assert backend.calls_to("chat") == []
    assert session.conversation_id == "c2"
    assert [m.content for m in session.messages] == ["Welcome back."]
    assert session.state == "IDLE"


@pytest.mark.asyncio
async def test_resume_with_no_history_starts_new(lifecycle, backend, session):
    backend.queue("list_conversations", {"conversations": []})
    backend.queue("chat", {"response": "Hey there, collector!", "conversationId": "c9"})

    assert await lifecycle.resume_most_recent() == "Hey there, collector!"
    assert session.conversation_id == "c9"


@pytest.mark.asyncio
async def test_resume_falls_back_when_detail_is_missing(lifecycle, backend, session):
    backend.queue("list_conversations", {"conversations": [{"id": "gone"}]})
    backend.queue("get_conversation", ApiError(code="API_ERROR", message="not found", http_status=404))
    backend.queue("chat", {"response": "Fresh start.", "conversationId": "c10"})

    assert await lifecycle.resume_most_recent() == "Fresh start."
    assert session.conversation_id == "c10"


@pytest.mark.asyncio
async def test_resume_offline_recovers_to_idle(lifecycle, backend, session):
    backend.queue("list_conversations", NetworkError(code="NETWORK_ERROR", message="offline"))
    assert await lifecycle.resume_most_recent() is None
    assert session.state == "IDLE"
    assert backend.calls_to("chat") == []


@pytest.mark.asyncio
async def test_start_new_resets_and_fails_silently(lifecycle, backend, session, notifier):
    session.hydrate("old", [ChatMessage(role="user", content="hi")])
    backend.queue("chat", NetworkError(code="NETWORK_ERROR", message="offline"))

    assert await lifecycle.start_new() is None
    assert session.messages == ()
    assert session.conversation_id is None
    assert notifier.notices == []


@pytest.mark.asyncio
async def test_list_history_uses_own_loading_flag(lifecycle, backend, session):
    flags = []

    async def list_conversations():
        flags.append((lifecycle.is_loading_history, session.is_busy))
        return {"conversations": [{"id": "c1", "title": "Pokemon", "created_at": "2024-01-01"}]}

    backend.list_conversations = list_conversations
    summaries = await lifecycle.list_history()

    assert flags == [(True, False)]
    assert lifecycle.is_loading_history is False
    assert [(s.id, s.title) for s in summaries] == [("c1", "Pokemon")]


@pytest.mark.asyncio
async def test_load_conversation_success_and_failure(lifecycle, backend, session, notifier):
    backend.queue("get_conversation", _detail("c5", "one", "two"), ApiError(code="API_ERROR", message="nope", http_status=500))

    assert await lifecycle.load_conversation("c5") is True
    assert session.conversation_id == "c5"
    assert session.turn_count == 2

    assert await lifecycle.load_conversation("c6") is False
    assert notifier.errors == ["Failed to load conversation"]
    assert session.state == "IDLE"


@pytest.mark.asyncio
async def test_delete_active_conversation_starts_new(lifecycle, backend, session):
    backend.queue("list_conversations", {"conversations": [{"id": "c1"}, {"id": "c2"}]})
    await lifecycle.list_history()
    session.hydrate("c1", [])
    backend.queue("chat", {"response": "New chat!", "conversationId": "c3"})

    assert await lifecycle.delete("c1") is True

    assert [c.id for c in lifecycle.past_conversations] == ["c2"]
    assert backend.calls_to("delete_conversation") == ["c1"]
    assert session.conversation_id == "c3"


@pytest.mark.asyncio
async def test_delete_other_conversation_keeps_active(lifecycle, backend, session):
    session.hydrate("c1", [])
    assert await lifecycle.delete("c2") is True
    assert backend.calls_to("chat") == []
    assert session.conversation_id == "c1"


def _gated_detail_backend(backend, *held):
    """让指定会话的详情请求停在各自的 Event 上，其余立即返回。"""

    events = {cid: asyncio.Event() for cid in held}

    async def get_conversation(conversation_id):
        backend.calls.append(("get_conversation", conversation_id))
        if conversation_id in events:
            await events[conversation_id].wait()
        return _detail(conversation_id, f"from {conversation_id}")

    backend.get_conversation = get_conversation
    return events


@pytest.mark.asyncio
async def test_slow_load_does_not_override_newer_load(lifecycle, backend, session, notifier):
    events = _gated_detail_backend(backend, "a")
    slow = asyncio.create_task(lifecycle.load_conversation("a"))
    await asyncio.sleep(0)
    assert session.state == "SWITCHING"

    assert await lifecycle.load_conversation("b") is True
    events["a"].set()

    assert await slow is False
    assert session.conversation_id == "b"
    assert [m.content for m in session.messages] == ["from b"]
    assert session.state == "IDLE"
    assert notifier.notices == []


@pytest.mark.asyncio
async def test_slow_load_does_not_override_start_new(lifecycle, backend, session, notifier):
    events = _gated_detail_backend(backend, "old")
    slow = asyncio.create_task(lifecycle.load_conversation("old"))
    await asyncio.sleep(0)

    backend.queue("chat", {"response": "Fresh start.", "conversationId": "new"})
    assert await lifecycle.start_new() == "Fresh start."
    events["old"].set()

    assert await slow is False
    assert session.conversation_id == "new"
    assert [m.content for m in session.messages] == ["Fresh start."]
    assert session.state == "IDLE"
    assert notifier.notices == []


@pytest.mark.asyncio
async def test_failed_stale_load_keeps_newer_state(lifecycle, backend, session, notifier):
    gate = asyncio.Event()

    async def get_conversation(conversation_id):
        await gate.wait()
        raise ApiError(code="API_ERROR", message="nope", http_status=500)

    backend.get_conversation = get_conversation
    slow = asyncio.create_task(lifecycle.load_conversation("a"))
    await asyncio.sleep(0)

    session.reset()
    assert session.begin_send() is not None
    gate.set()

    assert await slow is False
    assert session.state == "SENDING"
    assert notifier.notices == []


@pytest.mark.asyncio
async def test_switch_during_send_is_refused(lifecycle, orchestrator, backend, session, notifier):
    session.hydrate("c1", [])
    backend.gate = asyncio.Event()
    backend.queue("chat", {"response": "first reply", "conversationId": "c1"})
    first = asyncio.create_task(orchestrator.send_message("first"))
    await asyncio.sleep(0)

    assert await lifecycle.load_conversation("c2") is False
    assert notifier.notices == [("info", SWITCH_BUSY_NOTICE)]
    assert backend.calls_to("get_conversation") == []
    assert session.state == "SENDING"
    assert await orchestrator.send_message("second") is None

    backend.gate.set()
    assert await first == "first reply"
    assert len(backend.calls_to("chat")) == 1
    assert session.conversation_id == "c1"
    assert [m.content for m in session.messages] == ["first", "first reply"]
    assert session.state == "IDLE"
