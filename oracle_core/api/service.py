"""对外 API 服务模块。

OracleController 持有会话存储、缓存、信号槽、离线队列、会话状态与
后端客户端，并把它们注入到编排器和生命周期管理器中。上层应用（界面
或脚本）只需要和控制器打交道。
"""

import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from oracle_core.agents.extras import OracleExtras
from oracle_core.agents.lifecycle import ConversationLifecycleManager
from oracle_core.agents.orchestrator import MessageOrchestrator
from oracle_core.cache.market_cache import MarketCache
from oracle_core.cache.tier_cache import TierCache, TierInfo
from oracle_core.config.settings import OracleSettings, settings as default_settings
from oracle_core.domain.conversation import ConversationSession
from oracle_core.domain.models import CameraCapture, ChatMessage, ChatReply, ConversationSummary
from oracle_core.infrastructure.logging.logger import logger
from oracle_core.infrastructure.notify import LoggingNotifier, Notifier
from oracle_core.infrastructure.storage.session_store import SessionStorage, create_session_storage
from oracle_core.intelligence.device import DeviceProfiler
from oracle_core.providers import create_backend
from oracle_core.providers.base import OracleBackend
from oracle_core.signals.channel import PROVIDER_REPORT_KEY, SignalChannel
from oracle_core.sync.offline_queue import OfflineQueue, OfflineQueueItem
from oracle_core.sync.replay import OfflineReplayer, ReplayReport


class OracleController:
    def __init__(
        self,
        settings: OracleSettings = default_settings,
        backend: Optional[OracleBackend] = None,
        storage: Optional[SessionStorage] = None,
        notifier: Optional[Notifier] = None,
        width_provider: Optional[Callable[[], Optional[int]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.storage = storage if storage is not None else create_session_storage(settings.session_storage)
        self.backend = backend or create_backend(settings)
        self.notifier = notifier or LoggingNotifier()

        self.tier_cache = TierCache(self.storage, settings.tier_cache_ttl, clock)
        self.market_cache = MarketCache(self.storage, settings.market_cache_ttl, clock)
        self.signal_channel = SignalChannel(
            self.storage, PROVIDER_REPORT_KEY, max_age_seconds=settings.signal_max_age, clock=clock
        )
        self.offline_queue = OfflineQueue(self.storage, clock)
        self.session = ConversationSession()

        self.device_profiler = DeviceProfiler(width_provider or (lambda: settings.viewport_width))

        self.orchestrator = MessageOrchestrator(
            session=self.session,
            backend=self.backend,
            tier_cache=self.tier_cache,
            market_cache=self.market_cache,
            signal_channel=self.signal_channel,
            offline_queue=self.offline_queue,
            device_profiler=self.device_profiler,
            notifier=self.notifier,
            history_window=settings.max_context_messages,
            context_max_results=settings.context_max_results,
        )
        self.extras = OracleExtras(self.orchestrator)
        self.lifecycle = ConversationLifecycleManager(
            session=self.session,
            backend=self.backend,
            orchestrator=self.orchestrator,
            notifier=self.notifier,
        )
        self.replayer = OfflineReplayer(self.offline_queue, self.backend, on_delivered=self._on_replay_delivered)

    # ---- 消息 ----
    async def send_message(self, text: str) -> Optional[str]:
        return await self.orchestrator.send_message(text)

    async def send_image(self, capture: CameraCapture, mode: str = "glance", question: Optional[str] = None) -> Optional[str]:
        return await self.orchestrator.send_image(capture, mode=mode, question=question)

    async def send_hunt(self, capture: CameraCapture, asking_price: Optional[float] = None) -> Optional[str]:
        return await self.orchestrator.send_hunt(capture, asking_price=asking_price)

    async def create_content(self, params: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.orchestrator.create_content(params)

    def append_message(self, message: ChatMessage) -> None:
        self.orchestrator.append_message(message)

    # ---- 会话 ----
    async def resume_most_recent(self) -> Optional[str]:
        return await self.lifecycle.resume_most_recent()

    async def start_new(self, opening_message: str = "Hey") -> Optional[str]:
        return await self.lifecycle.start_new(opening_message)

    async def list_history(self) -> List[ConversationSummary]:
        return await self.lifecycle.list_history()

    async def load_conversation(self, conversation_id: str) -> bool:
        return await self.lifecycle.load_conversation(conversation_id)

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await self.lifecycle.delete(conversation_id)

    # ---- 跨组件信号与缓存 ----
    def publish_provider_report(
        self,
        provider: str,
        item_name: str,
        provider_value: Optional[float] = None,
        consensus_value: Optional[float] = None,
        provider_decision: Optional[str] = None,
        consensus_decision: Optional[str] = None,
    ) -> None:
        """记录用户点开的数据源报告，随下一条消息发送。"""

        self.signal_channel.publish({
            "type": "provider_report_tap",
            "provider": provider,
            "itemName": item_name,
            "providerValue": provider_value,
            "consensusValue": consensus_value,
            "providerDecision": provider_decision,
            "consensusDecision": consensus_decision,
        })

    def cached_tier(self) -> Optional[TierInfo]:
        return self.tier_cache.get()

    # ---- 离线重放 ----
    async def replay_offline_queue(self) -> ReplayReport:
        return await self.replayer.replay()

    def _on_replay_delivered(self, item: OfflineQueueItem, data: Dict[str, Any]) -> None:
        reply = ChatReply.from_payload(data)
        if reply.tier:
            self.tier_cache.set(reply.tier)
        if reply.market_data:
            self.market_cache.set(reply.market_data)
        sent_for = item.body.get("conversationId")
        # 只有仍停留在原会话时才把补发得到的回复写进对话
        if reply.response and sent_for and sent_for == self.session.conversation_id:
            self.session.append_assistant_turn(ChatMessage(role="assistant", content=reply.response))
        logger.info(
            "Offline message delivered",
            extra={"extra": {"queue_id": item.id, "conversation_id": sent_for}},
        )


_controller: Optional[OracleController] = None


def get_default_controller() -> OracleController:
    """获取默认的 OracleController 实例（单例）。"""
    global _controller
    if _controller is None:
        _controller = OracleController()
    return _controller
