"""会话生命周期管理：恢复最近会话、新建、历史列表、切换、删除。"""

from typing import Any, Dict, List, Optional

from oracle_core.agents.orchestrator import MessageOrchestrator
from oracle_core.domain.conversation import ConversationSession
from oracle_core.domain.exceptions import ApiError, BusinessError
from oracle_core.domain.models import ChatMessage, ConversationSummary
from oracle_core.infrastructure.logging.logger import logger
from oracle_core.infrastructure.notify import Notifier
from oracle_core.providers.base import OracleBackend


SWITCH_BUSY_NOTICE = "Wait for Oracle to finish responding before switching conversations."


class ConversationLifecycleManager:
    def __init__(
        self,
        session: ConversationSession,
        backend: OracleBackend,
        orchestrator: MessageOrchestrator,
        notifier: Notifier,
    ):
        self._session = session
        self._backend = backend
        self._orchestrator = orchestrator
        self._notifier = notifier
        self.past_conversations: List[ConversationSummary] = []
        # 与发送流程的 SENDING 状态相互独立，浏览历史不阻塞发消息
        self.is_loading_history = False

    async def resume_most_recent(self) -> Optional[str]:
        """恢复最近一次会话。

        有历史会话时直接加载其内容，不需要问候语，返回 None；
        没有历史会话时新建会话并返回问候语。加载途中被更新的切换或新建
        接管时放弃本次恢复，返回 None。
        """

        ticket = self._session.begin_hydrate()
        if ticket is None:
            return None
        try:
            data = await self._backend.list_conversations()
        except BusinessError as e:
            self._log_failure("resume_most_recent", e)
            self._session.recover(ticket)
            return None
        if not self._session.is_current(ticket):
            return None

        summaries = _parse_summaries(data)
        if summaries:
            latest = summaries[0]
            try:
                detail = await self._backend.get_conversation(latest.id)
            except ApiError as e:
                # 最近的会话读不到（已被删除等），退回到新建
                self._log_failure("resume_most_recent", e, conversation_id=latest.id)
                if not self._session.is_current(ticket):
                    return None
                return await self.start_new()
            except BusinessError as e:
                self._log_failure("resume_most_recent", e, conversation_id=latest.id)
                self._session.recover(ticket)
                return None
            if not self._session.is_current(ticket):
                return None
            if self._hydrate_from(detail, fallback_id=latest.id, ticket=ticket):
                return None
        return await self.start_new()

    async def start_new(self, opening_message: str = "Hey") -> Optional[str]:
        """重置为新会话并发送开场白，返回服务端问候语；失败时返回 None。"""

        self._session.reset()
        reply = await self._orchestrator.open_conversation(opening_message)
        if reply is None:
            return None
        logger.info(
            "Started new conversation",
            extra={"extra": {"conversation_id": self._session.conversation_id}},
        )
        return reply.response

    async def list_history(self) -> List[ConversationSummary]:
        self.is_loading_history = True
        try:
            data = await self._backend.list_conversations()
            self.past_conversations = _parse_summaries(data)
        except BusinessError as e:
            self._log_failure("list_history", e)
        finally:
            self.is_loading_history = False
        return self.past_conversations

    async def load_conversation(self, conversation_id: str) -> bool:
        """切换到指定会话，整体替换本地消息列表。

        有消息在途时拒绝切换并提示用户；加载途中又切换到别的会话或新建
        会话时，本次加载的结果被丢弃，返回 False。
        """

        ticket = self._session.begin_hydrate(switching=True)
        if ticket is None:
            logger.info(
                "Conversation switch refused while a message is in flight",
                extra={"extra": {"conversation_id": conversation_id}},
            )
            self._notifier.info(SWITCH_BUSY_NOTICE)
            return False
        try:
            detail = await self._backend.get_conversation(conversation_id)
        except BusinessError as e:
            self._log_failure("load_conversation", e, conversation_id=conversation_id)
            if self._session.is_current(ticket):
                self._notifier.error("Failed to load conversation")
                self._session.recover(ticket)
            return False
        if not self._session.is_current(ticket):
            logger.info(
                "Discarded superseded conversation load",
                extra={"extra": {"conversation_id": conversation_id}},
            )
            return False
        if not self._hydrate_from(detail, fallback_id=conversation_id, ticket=ticket):
            self._notifier.error("Failed to load conversation")
            return False
        return True

    async def delete(self, conversation_id: str) -> bool:
        try:
            await self._backend.delete_conversation(conversation_id)
        except BusinessError as e:
            self._log_failure("delete", e, conversation_id=conversation_id)
            self._notifier.error("Failed to delete conversation")
            return False

        self.past_conversations = [c for c in self.past_conversations if c.id != conversation_id]
        logger.info("Deleted conversation", extra={"extra": {"conversation_id": conversation_id}})
        if conversation_id == self._session.conversation_id:
            await self.start_new()
        return True

    def _hydrate_from(self, detail: Dict[str, Any], fallback_id: str, ticket: Optional[int] = None) -> bool:
        conversation = detail.get("conversation")
        if not isinstance(conversation, dict):
            logger.warning(
                "Conversation detail missing from response",
                extra={"extra": {"conversation_id": fallback_id}},
            )
            self._session.recover(ticket)
            return False
        messages = [
            ChatMessage.from_payload(m)
            for m in (conversation.get("messages") or [])
            if isinstance(m, dict)
        ]
        if not self._session.hydrate(str(conversation.get("id") or fallback_id), messages, ticket):
            return False
        logger.info(
            "Hydrated conversation",
            extra={"extra": {"conversation_id": self._session.conversation_id, "messages": len(messages)}},
        )
        return True

    @staticmethod
    def _log_failure(operation: str, error: BusinessError, **fields: Any) -> None:
        payload = {"operation": operation, "code": error.code, "error": error.message}
        payload.update(fields)
        logger.error("Conversation lifecycle operation failed", extra={"extra": payload})


def _parse_summaries(data: Dict[str, Any]) -> List[ConversationSummary]:
    return [
        ConversationSummary.from_payload(c)
        for c in (data.get("conversations") or [])
        if isinstance(c, dict) and c.get("id")
    ]
