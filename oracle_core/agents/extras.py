"""扩展能力：学习路径、藏家引荐、内容生成快捷入口。

这些操作调用各自的端点，但与主消息流共用同一个忙碌门控和失败处理，
结果以带附件的助手消息写入当前会话。
"""

from typing import Any, Dict, List, Optional, Tuple

from oracle_core.agents.orchestrator import MessageOrchestrator
from oracle_core.domain.exceptions import EntitlementRequired, ValidationError
from oracle_core.domain.models import Attachment, ChatMessage


VIDEO_STYLES = ("showcase", "unboxing", "flip_story", "market_update")
VIDEO_PLATFORMS = ("tiktok", "instagram", "youtube")

NO_MATCHES_MESSAGE = (
    "No strong collector matches found yet. Keep scanning and chatting. "
    "The more I learn about your interests, the better matches I can find."
)
INTRODUCTION_SENT_MESSAGE = "Introduction sent! Their Oracle will ask them if they're open to connecting."


class OracleExtras:
    def __init__(self, orchestrator: MessageOrchestrator):
        self._orchestrator = orchestrator

    @property
    def _session(self):
        return self._orchestrator.session

    # ---- 学习路径 ----
    async def send_learn(
        self,
        topic: str,
        mode: str = "general",
        current_step: int = 1,
        total_steps: int = 5,
        user_answer: Optional[str] = None,
    ) -> Optional[str]:
        """请求学习路径中的一步，返回该步内容。"""

        def build_body(prior: Tuple[ChatMessage, ...]) -> Dict[str, Any]:
            body: Dict[str, Any] = {
                "topic": topic,
                "mode": mode,
                "currentStep": current_step,
                "totalSteps": total_steps,
            }
            if user_answer:
                body["userAnswer"] = user_answer
            return body

        def handle(data: Dict[str, Any], ticket: int) -> Optional[str]:
            step = data.get("step") if isinstance(data.get("step"), dict) else {}
            content = step.get("content") or ""
            appended = self._session.append_assistant_turn(
                ChatMessage(role="assistant", content=content, attachments=(Attachment(type="learning", data=step),)),
                ticket,
            )
            return content if appended else None

        return await self._orchestrator.run_guarded(
            operation="learn",
            user_turn=ChatMessage(role="user", content=user_answer or f"Teach me about {topic}"),
            build_body=build_body,
            call=self._orchestrator.backend.learn,
            handle=handle,
            failure_notice="Learning session failed. Try again.",
        )

    # ---- 藏家引荐 ----
    async def find_matches(self) -> Optional[List[Dict[str, Any]]]:
        """查找兴趣相近的藏家，最佳匹配以引荐卡片形式展示。"""

        def handle(data: Dict[str, Any], ticket: int) -> List[Dict[str, Any]]:
            matches = [m for m in (data.get("matches") or []) if isinstance(m, dict)]
            if not matches:
                self._session.append_assistant_turn(
                    ChatMessage(role="assistant", content=NO_MATCHES_MESSAGE), ticket
                )
                return []
            best = matches[0]
            card = {
                "matchId": best.get("matchId"),
                "sharedInterests": list(best.get("sharedInterests") or []),
                "matchDescription": best.get("matchReason") or "",
                "status": "pending",
            }
            self._session.append_assistant_turn(
                ChatMessage(
                    role="assistant",
                    content=(
                        f"I found someone who shares your interests! {card['matchDescription']}. "
                        "Want me to see if they're open to connecting?"
                    ),
                    attachments=(Attachment(type="introduction", data=card),),
                ),
                ticket,
            )
            return matches

        return await self._orchestrator.run_guarded(
            operation="introductions:find_matches",
            user_turn=None,
            build_body=lambda prior: {"action": "find_matches"},
            call=self._orchestrator.backend.introductions,
            handle=handle,
            failure_notice="Match search failed.",
        )

    async def initiate_introduction(
        self,
        match_id: str,
        shared_interests: List[str],
        match_reason: str,
    ) -> Optional[str]:
        body = {
            "action": "initiate",
            "matchId": match_id,
            "sharedInterests": list(shared_interests),
            "matchReason": match_reason,
        }

        def handle(data: Dict[str, Any], ticket: int) -> Optional[str]:
            text = data.get("message") or INTRODUCTION_SENT_MESSAGE
            self._session.append_assistant_turn(ChatMessage(role="assistant", content=text), ticket)
            return text

        return await self._orchestrator.run_guarded(
            operation="introductions:initiate",
            user_turn=None,
            build_body=lambda prior: body,
            call=self._orchestrator.backend.introductions,
            handle=handle,
            failure_notice="Failed to send introduction.",
        )

    async def respond_to_introduction(self, intro_id: str, accepted: bool) -> Optional[str]:
        def handle(data: Dict[str, Any], ticket: int) -> Optional[str]:
            text = data.get("message")
            if text:
                self._session.append_assistant_turn(ChatMessage(role="assistant", content=text), ticket)
            return text

        return await self._orchestrator.run_guarded(
            operation="introductions:respond",
            user_turn=None,
            build_body=lambda prior: {"action": "respond", "introId": intro_id, "accepted": accepted},
            call=self._orchestrator.backend.introductions,
            handle=handle,
            failure_notice="Failed to respond to introduction.",
        )

    # ---- 内容生成快捷入口 ----
    async def create_listing(
        self,
        item_name: str,
        platform: str = "ebay",
        instructions: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        params: Dict[str, Any] = {"mode": "listing", "itemName": item_name, "platform": platform}
        prompt = f'List "{item_name}" on {platform}'
        if instructions:
            params["instructions"] = instructions
            prompt += f" ({instructions})"

        def entitlement_message(error: EntitlementRequired) -> str:
            required = error.payload.get("requiredTier") or "Pro"
            return f"Listing generation requires {required} tier. Want to learn about upgrading?"

        return await self._orchestrator.create_content(
            params,
            user_prompt=prompt,
            entitlement_message=entitlement_message,
            reply_text=lambda data: f"Here's your {platform} listing, check it out:",
        )

    async def create_video(
        self,
        item_name: str,
        style: str = "showcase",
        platform: str = "tiktok",
    ) -> Optional[Dict[str, Any]]:
        if style not in VIDEO_STYLES:
            raise ValidationError(code="INVALID_VIDEO_STYLE", message=f"unsupported video style: {style}")
        if platform not in VIDEO_PLATFORMS:
            raise ValidationError(code="INVALID_VIDEO_PLATFORM", message=f"unsupported video platform: {platform}")

        params = {
            "mode": "video",
            "itemName": item_name,
            "style": style,
            "videoParams": {"platform": platform},
        }

        def entitlement_message(error: EntitlementRequired) -> str:
            detail = error.payload.get("message")
            return f"Video creation requires Elite tier. {detail}" if detail else "Video creation requires Elite tier."

        return await self._orchestrator.create_content(
            params,
            user_prompt=f'Create a {style} video for "{item_name}" on {platform}',
            entitlement_message=entitlement_message,
            reply_text=lambda data: "Script generated! Review it and I can send it to video production:",
        )
