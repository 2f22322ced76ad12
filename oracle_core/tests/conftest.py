import asyncio
from typing import Any, Dict, List, Optional

import pytest

from oracle_core.cache.market_cache import MarketCache
from oracle_core.cache.tier_cache import TierCache
from oracle_core.agents.extras import OracleExtras
from oracle_core.agents.lifecycle import ConversationLifecycleManager
from oracle_core.agents.orchestrator import MessageOrchestrator
from oracle_core.domain.conversation import ConversationSession
from oracle_core.infrastructure.notify import RecordingNotifier
from oracle_core.infrastructure.storage.session_store import MemorySessionStorage
from oracle_core.intelligence.device import DeviceProfiler
from oracle_core.signals.channel import SignalChannel
from oracle_core.sync.offline_queue import OfflineQueue


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """按方法名预置响应的后端桩。

    responses[method] 是一个队列，元素为 dict（返回）或异常实例（抛出）。
    gate 不为 None 时，每次调用都会先等待它被 set。
    """

    name = "fake"

    def __init__(self):
        self.responses: Dict[str, List[Any]] = {}
        self.calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    def queue(self, method: str, *results: Any) -> None:
        self.responses.setdefault(method, []).extend(results)

    def calls_to(self, method: str) -> List[Any]:
        return [arg for name, arg in self.calls if name == method]

    async def _respond(self, method: str, arg: Any) -> Any:
        self.calls.append((method, arg))
        if self.gate is not None:
            await self.gate.wait()
        pending = self.responses.get(method) or []
        result = pending.pop(0) if pending else {}
        if isinstance(result, Exception):
            raise result
        return result

    async def chat(self, body):
        return await self._respond("chat", body)

    async def see(self, body):
        return await self._respond("see", body)

    async def hunt(self, body):
        return await self._respond("hunt", body)

    async def create(self, body):
        return await self._respond("create", body)

    async def learn(self, body):
        return await self._respond("learn", body)

    async def introductions(self, body):
        return await self._respond("introductions", body)

    async def list_conversations(self):
        return await self._respond("list_conversations", None)

    async def get_conversation(self, conversation_id):
        return await self._respond("get_conversation", conversation_id)

    async def delete_conversation(self, conversation_id):
        await self._respond("delete_conversation", conversation_id)

    async def replay(self, item):
        return await self._respond("replay", item)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemorySessionStorage()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def session():
    return ConversationSession()


@pytest.fixture
def orchestrator(session, backend, storage, notifier, clock):
    return MessageOrchestrator(
        session=session,
        backend=backend,
        tier_cache=TierCache(storage, clock=clock),
        market_cache=MarketCache(storage, clock=clock),
        signal_channel=SignalChannel(storage, max_age_seconds=600, clock=clock),
        offline_queue=OfflineQueue(storage, clock),
        device_profiler=DeviceProfiler(lambda: 390),
        notifier=notifier,
    )


@pytest.fixture
def extras(orchestrator):
    return OracleExtras(orchestrator)


@pytest.fixture
def lifecycle(session, backend, orchestrator, notifier):
    return ConversationLifecycleManager(session, backend, orchestrator, notifier)
