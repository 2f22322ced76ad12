"""消息编排器。

每次发送遵循同一流程：

1. 忙碌检查：当前会话已有请求在途时直接返回 None，新请求被丢弃而不是排队。
2. 先把用户消息追加到会话（乐观更新），再做任何网络 I/O。
3. 同步计算 ClientContext（意图、能量、本地上下文、设备类型），
   读取信号槽与行情缓存。
4. 向对应端点发出恰好一次请求。
5. 成功：追加助手消息，确认会话 id，刷新套餐缓存与行情缓存。
6. 失败：保留用户消息，提示用户；仅文本路径在网络层失败时写入离线队列。
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple, TypeVar

from oracle_core.cache.market_cache import MarketCache
from oracle_core.cache.tier_cache import TierCache
from oracle_core.domain.conversation import ConversationSession
from oracle_core.domain.exceptions import (
    AuthenticationMissing,
    BusinessError,
    EntitlementRequired,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from oracle_core.domain.models import (
    Attachment,
    CameraCapture,
    ChatMessage,
    ChatReply,
    ClientContext,
    HuntResult,
    Intent,
    VISION_MODES,
    VisionResult,
)
from oracle_core.infrastructure.logging.logger import logger
from oracle_core.infrastructure.notify import Notifier
from oracle_core.intelligence.context_search import search_local_context
from oracle_core.intelligence.device import DeviceProfiler
from oracle_core.intelligence.energy import detect_energy
from oracle_core.intelligence.intent import detect_intent
from oracle_core.providers.base import CHAT_PATH, OracleBackend
from oracle_core.signals.channel import SignalChannel
from oracle_core.sync.offline_queue import OfflineQueue


T = TypeVar("T")

AUTH_NOTICE = "Sign in to chat with Oracle."
OFFLINE_NOTICE = "You're offline. Message queued for when you're back online."
OFFLINE_UNQUEUED_NOTICE = "You're offline and the message could not be saved. Try again."
TEXT_FAILURE_NOTICE = "Oracle had trouble responding. Try again."
VISION_FAILURE_NOTICE = "Oracle couldn't see that. Try again."
HUNT_FAILURE_NOTICE = "Hunt triage failed. Try again."
CONTENT_FAILURE_NOTICE = "Content creation failed. Try again."


class MessageOrchestrator:
    def __init__(
        self,
        session: ConversationSession,
        backend: OracleBackend,
        tier_cache: TierCache,
        market_cache: MarketCache,
        signal_channel: SignalChannel,
        offline_queue: OfflineQueue,
        device_profiler: DeviceProfiler,
        notifier: Notifier,
        history_window: int = 20,
        context_max_results: int = 3,
    ):
        self._session = session
        self._backend = backend
        self._tier_cache = tier_cache
        self._market_cache = market_cache
        self._signal_channel = signal_channel
        self._offline_queue = offline_queue
        self._device_profiler = device_profiler
        self._notifier = notifier
        self._history_window = history_window
        self._context_max_results = context_max_results

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def backend(self) -> OracleBackend:
        return self._backend

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    # ------------------------------------------------------------------
    # 本地预处理
    # ------------------------------------------------------------------
    def build_client_context(
        self,
        text: str,
        prior: Sequence[ChatMessage] = (),
        intent: Optional[Intent] = None,
    ) -> ClientContext:
        return ClientContext(
            detected_intent=intent or detect_intent(text),
            detected_energy=detect_energy(text),
            local_context=tuple(search_local_context(text, prior, self._context_max_results)),
            device_type=self._device_profiler.device_type(),
        )

    def neutral_client_context(self) -> ClientContext:
        return ClientContext(
            detected_intent="casual",
            detected_energy="neutral",
            local_context=(),
            device_type=self._device_profiler.device_type(),
        )

    def _enrich(self, body: Dict[str, Any], text: str, context: ClientContext) -> Dict[str, Any]:
        """写入 clientContext、会话 id、行情缓存命中与信号槽内容。"""

        body["clientContext"] = context.to_payload()
        if self._session.conversation_id:
            body["conversationId"] = self._session.conversation_id
        market_hint = self._market_cache.get_relevant(text) if text else None
        if market_hint:
            body["cachedMarketData"] = market_hint
        event = self._signal_channel.consume()
        if event is not None:
            body["providerReportEvent"] = {**event.payload, "timestamp": event.timestamp}
        return body

    def _history(self, prior: Sequence[ChatMessage]) -> list:
        return [m.to_history() for m in prior][-self._history_window:]

    # ------------------------------------------------------------------
    # 通用发送流程
    # ------------------------------------------------------------------
    async def run_guarded(
        self,
        *,
        operation: str,
        user_turn: Optional[ChatMessage],
        build_body: Callable[[Tuple[ChatMessage, ...]], Dict[str, Any]],
        call: Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]],
        handle: Callable[[Dict[str, Any], int], T],
        failure_notice: str,
        endpoint: Optional[str] = None,
        on_entitlement: Optional[Callable[[EntitlementRequired, int], None]] = None,
        silent: bool = False,
    ) -> Optional[T]:
        """所有发送变体共用的流程。

        Args:
            operation: 日志中的操作名。
            user_turn: 乐观追加的用户消息，None 表示不追加。
            build_body: 以追加前的消息列表为参数构造请求体。
            call: 实际发请求的后端方法。
            handle: 成功时处理响应，参数为 (响应 JSON, ticket)。
            failure_notice: 失败时给用户的提示。
            endpoint: 网络层失败时写入离线队列的端点；None 表示不入队。
            on_entitlement: 403 的专门处理；None 时按普通失败处理。
            silent: True 时失败不提示用户，只记日志。
        """

        ticket = self._session.begin_send()
        if ticket is None:
            logger.info(
                "Dropped send while another request is in flight",
                extra={"extra": {"operation": operation, "state": self._session.state}},
            )
            return None

        prior = self._session.messages
        if user_turn is not None:
            self._session.append_user_turn(user_turn)

        log_ctx: Dict[str, Any] = {
            "operation": operation,
            "conversation_id": self._session.conversation_id,
        }
        start_time = time.time()
        body: Dict[str, Any] = {}
        try:
            body = build_body(prior)
            self._log(logging.INFO, "Oracle request started", log_ctx,
                      intent=body.get("clientContext", {}).get("detectedIntent"))
            data = await call(body)
            result = handle(data, ticket)
            self._log(logging.INFO, "Oracle request completed", log_ctx,
                      elapsed_seconds=round(time.time() - start_time, 2))
            return result
        except EntitlementRequired as e:
            if on_entitlement is None:
                self._fail(e, failure_notice, log_ctx, silent)
            else:
                self._log(logging.INFO, "Entitlement required", log_ctx, code=e.code)
                on_entitlement(e, ticket)
            return None
        except NetworkError as e:
            if endpoint is not None:
                self._queue_offline(endpoint, body, log_ctx, e)
            else:
                self._fail(e, failure_notice, log_ctx, silent)
            return None
        except BusinessError as e:
            self._fail(e, failure_notice, log_ctx, silent)
            return None
        finally:
            self._session.end_send(ticket)

    def _fail(self, error: BusinessError, notice: str, log_ctx: Dict[str, Any], silent: bool) -> None:
        self._log(logging.ERROR, "Oracle request failed", log_ctx,
                  code=error.code, error=error.message, http_status=error.http_status)
        if silent:
            return
        if isinstance(error, AuthenticationMissing):
            self._notifier.error(AUTH_NOTICE)
        elif isinstance(error, RateLimitError) and error.payload.get("message"):
            self._notifier.error(error.payload["message"])
        else:
            self._notifier.error(notice)

    def _queue_offline(self, endpoint: str, body: Dict[str, Any], log_ctx: Dict[str, Any], error: NetworkError) -> None:
        self._log(logging.WARNING, "Transport failure, queueing message", log_ctx,
                  code=error.code, error=error.message)
        try:
            self._offline_queue.enqueue(endpoint, body, {"Content-Type": "application/json"})
        except BusinessError as e:
            self._log(logging.ERROR, "Offline queue unavailable", log_ctx, error=e.message)
            self._notifier.error(OFFLINE_UNQUEUED_NOTICE)
            return
        self._notifier.error(OFFLINE_NOTICE)

    def _apply_reply(self, reply: ChatReply, ticket: int) -> None:
        """把响应中的会话 id、计数、套餐与行情同步到会话和缓存。"""

        self._session.confirm_identity(reply.conversation_id, ticket)
        if reply.quick_chips is not None:
            self._session.quick_chips = reply.quick_chips
        if reply.scan_count is not None:
            self._session.scan_count = reply.scan_count
        if reply.vault_count is not None:
            self._session.vault_count = reply.vault_count
        if reply.tier:
            self._tier_cache.set(reply.tier)
        if reply.market_data:
            self._market_cache.set(reply.market_data)

    # ------------------------------------------------------------------
    # 文本
    # ------------------------------------------------------------------
    async def send_message(self, text: str) -> Optional[str]:
        text = (text or "").strip()
        if not text:
            return None

        def build_body(prior: Tuple[ChatMessage, ...]) -> Dict[str, Any]:
            context = self.build_client_context(text, prior)
            self._session.current_energy = context.detected_energy
            body = {"message": text, "conversationHistory": self._history(prior)}
            return self._enrich(body, text, context)

        def handle(data: Dict[str, Any], ticket: int) -> Optional[str]:
            reply = ChatReply.from_payload(data)
            appended = self._session.append_assistant_turn(
                ChatMessage(role="assistant", content=reply.response), ticket
            )
            if not appended:
                return None
            self._apply_reply(reply, ticket)
            return reply.response

        return await self.run_guarded(
            operation="chat",
            user_turn=ChatMessage(role="user", content=text),
            build_body=build_body,
            call=self._backend.chat,
            handle=handle,
            failure_notice=TEXT_FAILURE_NOTICE,
            endpoint=CHAT_PATH,
        )

    async def open_conversation(self, opening_message: str = "Hey") -> Optional[ChatReply]:
        """发送开场白并采用服务端下发的会话 id 与问候语。

        使用中性的 ClientContext，不追加用户消息，失败时静默返回 None。
        """

        def build_body(prior: Tuple[ChatMessage, ...]) -> Dict[str, Any]:
            return {
                "message": opening_message,
                "conversationHistory": [],
                "clientContext": self.neutral_client_context().to_payload(),
            }

        def handle(data: Dict[str, Any], ticket: int) -> Optional[ChatReply]:
            reply = ChatReply.from_payload(data)
            if not self._session.append_assistant_turn(
                ChatMessage(role="assistant", content=reply.response), ticket
            ):
                return None
            self._session.quick_chips = reply.quick_chips or []
            self._session.scan_count = reply.scan_count or 0
            self._session.vault_count = reply.vault_count or 0
            self._apply_reply(reply, ticket)
            return reply

        return await self.run_guarded(
            operation="open_conversation",
            user_turn=None,
            build_body=build_body,
            call=self._backend.chat,
            handle=handle,
            failure_notice=TEXT_FAILURE_NOTICE,
            silent=True,
        )

    # ------------------------------------------------------------------
    # 视觉 / 寻宝
    # ------------------------------------------------------------------
    async def send_image(
        self,
        capture: CameraCapture,
        mode: str = "glance",
        question: Optional[str] = None,
    ) -> Optional[str]:
        if mode not in VISION_MODES:
            raise ValidationError(code="INVALID_VISION_MODE", message=f"unsupported vision mode: {mode}")
        question = (question or "").strip() or None

        def build_body(prior: Tuple[ChatMessage, ...]) -> Dict[str, Any]:
            text = question or ""
            context = self.build_client_context(text, prior, intent=None if question else "vision")
            body: Dict[str, Any] = {
                "image": capture.base64,
                "mimeType": capture.mime_type,
                "mode": mode,
            }
            if question:
                body["question"] = question
            return self._enrich(body, text, context)

        def handle(data: Dict[str, Any], ticket: int) -> Optional[str]:
            vision_payload = data.get("visionData")
            result = VisionResult.from_payload(vision_payload if isinstance(vision_payload, Mapping) else data)
            text = data.get("response") or data.get("description") or result.description or "I see it."
            attachments = (Attachment(type="vision", data=result),) if isinstance(vision_payload, Mapping) else ()
            if not self._session.append_assistant_turn(
                ChatMessage(role="assistant", content=text, attachments=attachments), ticket
            ):
                return None
            self._apply_reply(ChatReply.from_payload(data), ticket)
            return text

        return await self.run_guarded(
            operation="see",
            user_turn=ChatMessage(
                role="user",
                content=question or f"[{mode} mode]",
                image_preview=capture.base64,
                vision_mode=mode,
            ),
            build_body=build_body,
            call=self._backend.see,
            handle=handle,
            failure_notice=VISION_FAILURE_NOTICE,
        )

    async def send_hunt(self, capture: CameraCapture, asking_price: Optional[float] = None) -> Optional[str]:
        if asking_price:
            content = f"Hunt mode - asking ${asking_price:g}"
        else:
            content = "Hunt mode - what do you think?"

        def build_body(prior: Tuple[ChatMessage, ...]) -> Dict[str, Any]:
            context = self.build_client_context("", prior, intent="vision")
            body: Dict[str, Any] = {"image": capture.base64, "mimeType": capture.mime_type}
            if asking_price is not None:
                body["askingPrice"] = asking_price
            return self._enrich(body, "", context)

        def handle(data: Dict[str, Any], ticket: int) -> Optional[str]:
            result = HuntResult.from_payload(data)
            text = data.get("response") or f"{result.verdict}: {result.reasoning}"
            if not self._session.append_assistant_turn(
                ChatMessage(role="assistant", content=text, attachments=(Attachment(type="hunt", data=result),)),
                ticket,
            ):
                return None
            self._apply_reply(ChatReply.from_payload(data), ticket)
            return data.get("response") or result.reasoning or None

        return await self.run_guarded(
            operation="hunt",
            user_turn=ChatMessage(role="user", content=content, image_preview=capture.base64, vision_mode="hunt_scan"),
            build_body=build_body,
            call=self._backend.hunt,
            handle=handle,
            failure_notice=HUNT_FAILURE_NOTICE,
        )

    # ------------------------------------------------------------------
    # 内容生成（listing / video / image / brag card）
    # ------------------------------------------------------------------
    async def create_content(
        self,
        params: Mapping[str, Any],
        user_prompt: Optional[str] = None,
        entitlement_message: Optional[Callable[[EntitlementRequired], str]] = None,
        reply_text: Optional[Callable[[Dict[str, Any]], str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """生成内容。403 作为提示性的助手消息，而不是错误。

        user_prompt / entitlement_message / reply_text 供快捷入口定制文案。
        """

        mode = params.get("mode") or "content"
        item_name = params.get("itemName") or ""
        prompt = user_prompt or (f'Create {mode} for "{item_name}"' if item_name else f"Create {mode}")

        def build_body(prior: Tuple[ChatMessage, ...]) -> Dict[str, Any]:
            text = " ".join(str(v) for v in (item_name, params.get("instructions")) if v)
            context = self.build_client_context(text, prior, intent="creative")
            return self._enrich(dict(params), text, context)

        def handle(data: Dict[str, Any], ticket: int) -> Optional[Dict[str, Any]]:
            text = reply_text(data) if reply_text else _default_content_text(data)
            if not self._session.append_assistant_turn(
                ChatMessage(role="assistant", content=text, attachments=_content_attachments(data)), ticket
            ):
                return None
            self._apply_reply(ChatReply.from_payload(data), ticket)
            return data

        def on_entitlement(error: EntitlementRequired, ticket: int) -> None:
            if entitlement_message:
                text = entitlement_message(error)
            else:
                required = error.payload.get("requiredTier") or "Pro"
                text = error.payload.get("message") or (
                    f"This feature requires {required} tier. Want to learn about upgrading?"
                )
            self._session.append_assistant_turn(ChatMessage(role="assistant", content=text), ticket)

        return await self.run_guarded(
            operation=f"create:{mode}",
            user_turn=ChatMessage(role="user", content=prompt),
            build_body=build_body,
            call=self._backend.create,
            handle=handle,
            failure_notice=CONTENT_FAILURE_NOTICE,
            on_entitlement=on_entitlement,
        )

    # ------------------------------------------------------------------
    def append_message(self, message: ChatMessage) -> None:
        """供会话外的协作者直接注入一条消息。"""

        if message.role == "user":
            self._session.append_user_turn(message)
        else:
            self._session.append_assistant_turn(message)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def _default_content_text(data: Mapping[str, Any]) -> str:
    listing = data.get("listing")
    if isinstance(listing, Mapping):
        return f"Here's your {listing.get('platform') or 'marketplace'} listing, ready to review:"
    if data.get("script"):
        return "Script generated, take a look:"
    return data.get("text") or "Here you go:"


def _content_attachments(data: Mapping[str, Any]) -> Tuple[Attachment, ...]:
    attachments = []
    if isinstance(data.get("listing"), Mapping):
        attachments.append(Attachment(type="listing", data=dict(data["listing"])))
    if data.get("videoUrl"):
        attachments.append(Attachment(type="video", data={
            "url": data["videoUrl"],
            "status": data.get("videoStatus") or "ready",
        }))
    if data.get("imageUrl"):
        attachments.append(Attachment(type="image", data={"url": data["imageUrl"]}))
    return tuple(attachments)
