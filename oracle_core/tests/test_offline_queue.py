import pytest

from oracle_core.domain.exceptions import ApiError, NetworkError, StorageUnavailable
from oracle_core.infrastructure.storage.session_store import DisabledSessionStorage
from oracle_core.sync.offline_queue import OFFLINE_QUEUE_KEY, OfflineQueue
from oracle_core.sync.replay import OfflineReplayer


def test_enqueue_strips_credentials_and_assigns_key(storage, clock):
    queue = OfflineQueue(storage, clock)
    item = queue.enqueue(
        "/api/oracle/chat",
        {"message": "hi"},
        {"Authorization": "Bearer secret", "Content-Type": "application/json"},
    )
    assert item.headers == {"Content-Type": "application/json"}
    assert item.idempotency_key.startswith("q-")
    assert item.enqueued_at == int(clock.now * 1000)
    assert "secret" not in storage.get_item(OFFLINE_QUEUE_KEY)
    assert len(queue) == 1
    assert queue.items()[0].body == {"message": "hi"}


def test_enqueue_on_disabled_storage_raises(clock):
    queue = OfflineQueue(DisabledSessionStorage(), clock)
    with pytest.raises(StorageUnavailable):
        queue.enqueue("/api/oracle/chat", {"message": "hi"})
    assert queue.items() == []


@pytest.mark.asyncio
async def test_replay_removes_delivered_and_keeps_failed(storage, clock, backend):
    queue = OfflineQueue(storage, clock)
    first = queue.enqueue("/api/oracle/chat", {"message": "one"})
    second = queue.enqueue("/api/oracle/chat", {"message": "two"})
    third = queue.enqueue("/api/oracle/chat", {"message": "three"})
    backend.queue(
        "replay",
        {"response": "ok one"},
        NetworkError(code="NETWORK_ERROR", message="offline"),
        ApiError(code="API_ERROR", message="boom", http_status=500),
    )
    delivered = []

    async def on_delivered(item, data):
        delivered.append((item.id, data["response"]))

    report = await OfflineReplayer(queue, backend, on_delivered=on_delivered).replay()

    assert report.delivered == [first.id]
    assert report.failed == [second.id, third.id]
    assert delivered == [(first.id, "ok one")]
    assert [i.id for i in queue.items()] == [second.id, third.id]
    # 同一条记录每次重放都带相同的幂等键
    assert backend.calls_to("replay")[1].idempotency_key == second.idempotency_key


@pytest.mark.asyncio
async def test_replay_empty_queue(storage, clock, backend):
    report = await OfflineReplayer(OfflineQueue(storage, clock), backend).replay()
    assert report.delivered == [] and report.failed == []
    assert backend.calls == []
