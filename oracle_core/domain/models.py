"""统一的对话数据模型。

本模块定义编排层内部以及与 Oracle 后端之间共享的标准数据结构：

- ChatMessage / Attachment: 会话中的一条消息及其附件（不可变）。
- ClientContext: 每次发送前在本地计算的客户端上下文。
- CameraCapture: 视觉 / 寻宝模式提交的图片。
- ChatReply / VisionResult / HuntResult: 后端响应解析后的结构。
- ConversationSummary / QuickChip: 历史列表与快捷回复。

字段命名使用 Python 风格，to_payload() 负责转换为后端 JSON 的 camelCase。
"""

import time
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple


Role = Literal["user", "assistant", "system"]

Intent = Literal[
    "casual",
    "quick_answer",
    "deep_analysis",
    "market_query",
    "vision",
    "strategy",
    "creative",
]
INTENTS: Tuple[str, ...] = (
    "casual",
    "quick_answer",
    "deep_analysis",
    "market_query",
    "vision",
    "strategy",
    "creative",
)

# 能量分类器只输出前五个值；casual 由服务端根据语气判断
Energy = Literal["excited", "frustrated", "focused", "curious", "neutral"]
ENERGIES: Tuple[str, ...] = ("excited", "frustrated", "focused", "curious", "neutral")

DeviceType = Literal["mobile", "tablet", "desktop"]

VisionMode = Literal["glance", "identify", "room_scan", "hunt_scan", "read", "remember"]
VISION_MODES: Tuple[str, ...] = ("glance", "identify", "room_scan", "hunt_scan", "read", "remember")

AttachmentType = Literal["vision", "hunt", "listing", "image", "video", "learning", "introduction"]

HuntVerdict = Literal["BUY", "SKIP", "HOLD", "RESEARCH"]
HUNT_VERDICTS: Tuple[str, ...] = ("BUY", "SKIP", "HOLD", "RESEARCH")


def now_ms() -> int:
    """墙上时间的毫秒时间戳，与服务端存储的消息时间可直接比较。

    系统时钟回拨时相邻消息的时间戳可能倒退；会话内的先后顺序以消息在
    列表中的位置为准，不依赖时间戳排序。
    """
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Attachment:
    """消息附件。

    type 决定 data 的结构：vision 为 VisionResult，hunt 为 HuntResult，
    其余类型（listing / image / video / learning / introduction）为原始 dict。
    """

    type: AttachmentType
    data: Any = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        if is_dataclass(self.data):
            data = asdict(self.data)
        else:
            data = dict(self.data)
        return {"type": self.type, "data": data}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Attachment":
        kind = payload["type"]
        data = payload.get("data")
        if data is None:
            data = {k: v for k, v in payload.items() if k != "type"}
        if kind == "vision" and isinstance(data, Mapping):
            data = VisionResult.from_payload(data)
        elif kind == "hunt" and isinstance(data, Mapping):
            data = HuntResult.from_payload(data)
        return cls(type=kind, data=data)


@dataclass(frozen=True)
class ChatMessage:
    """一条会话消息，追加到会话后不再修改。

    - timestamp: 发送/接收时刻（毫秒）。
    - image_preview: 视觉类消息附带的 base64 预览图。
    - vision_mode: 视觉类消息使用的分析模式。
    """

    role: Role
    content: str
    timestamp: int = field(default_factory=now_ms)
    attachments: Tuple[Attachment, ...] = ()
    image_preview: Optional[str] = None
    vision_mode: Optional[str] = None

    def to_history(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ChatMessage":
        """从服务端会话详情中的消息 JSON 还原。"""

        attachments = tuple(
            Attachment.from_payload(a)
            for a in (data.get("attachments") or [])
            if isinstance(a, Mapping) and a.get("type")
        )
        timestamp = data.get("timestamp")
        return cls(
            role=data.get("role") or "assistant",
            content=data.get("content") or "",
            timestamp=int(timestamp) if isinstance(timestamp, (int, float)) else now_ms(),
            attachments=attachments,
            image_preview=data.get("imagePreview"),
            vision_mode=data.get("visionMode"),
        )


@dataclass(frozen=True)
class ClientContext:
    """发送前本地计算的上下文，每条消息重新生成，不持久化。"""

    detected_intent: Intent
    detected_energy: Energy
    local_context: Tuple[str, ...]
    device_type: DeviceType
    timestamp: int = field(default_factory=now_ms)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "detectedIntent": self.detected_intent,
            "detectedEnergy": self.detected_energy,
            "localContext": list(self.local_context),
            "deviceType": self.device_type,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CameraCapture:
    base64: str
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class QuickChip:
    label: str
    message: str


@dataclass
class ConversationSummary:
    id: str
    title: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ConversationSummary":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class ChatReply:
    """/api/oracle/chat 的响应。

    raw 保留原始 JSON，便于调试和上层取用未建模字段。
    """

    response: str
    conversation_id: Optional[str] = None
    quick_chips: Optional[List[QuickChip]] = None
    scan_count: Optional[int] = None
    vault_count: Optional[int] = None
    tier: Optional[Dict[str, Any]] = None
    market_data: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ChatReply":
        chips = data.get("quickChips")
        quick_chips = None
        if isinstance(chips, list):
            quick_chips = [
                QuickChip(label=c.get("label") or "", message=c.get("message") or c.get("label") or "")
                for c in chips
                if isinstance(c, Mapping)
            ]
        return cls(
            response=data.get("response") or "",
            conversation_id=data.get("conversationId"),
            quick_chips=quick_chips,
            scan_count=data.get("scanCount"),
            vault_count=data.get("vaultCount"),
            tier=data.get("tier") if isinstance(data.get("tier"), dict) else None,
            market_data=data.get("marketData") if isinstance(data.get("marketData"), dict) else None,
            raw=dict(data),
        )


@dataclass
class IdentifiedObject:
    name: str
    category: str = "general"
    estimated_value: Optional[float] = None
    confidence: float = 0.0
    position_hint: str = ""


@dataclass
class VisionResult:
    """视觉分析结果：描述、识别出的物品（含置信度与估值），OCR 文本。"""

    description: str
    objects: List[IdentifiedObject] = field(default_factory=list)
    extracted_text: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "VisionResult":
        objects = []
        for obj in data.get("objects") or []:
            if not isinstance(obj, Mapping) or not obj.get("name"):
                continue
            value = obj.get("estimated_value", obj.get("estimatedValue"))
            objects.append(
                IdentifiedObject(
                    name=obj["name"],
                    category=obj.get("category") or "general",
                    estimated_value=float(value) if isinstance(value, (int, float)) else None,
                    confidence=float(obj.get("confidence") or 0.0),
                    position_hint=obj.get("position_hint") or obj.get("positionHint") or "",
                )
            )
        return cls(
            description=data.get("description") or "",
            objects=objects,
            extracted_text=data.get("extractedText") or data.get("extracted_text"),
            raw=dict(data),
        )


@dataclass
class HuntResult:
    """寻宝分诊结果：BUY/SKIP/HOLD/RESEARCH 结论与理由。"""

    verdict: HuntVerdict
    reasoning: str
    item_name: str = ""
    value_low: Optional[float] = None
    value_high: Optional[float] = None
    confidence: float = 0.0
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "HuntResult":
        verdict = str(data.get("verdict") or "").upper()
        if verdict not in HUNT_VERDICTS:
            # 服务端的 SCAN 等其他结论统一归为需进一步研究
            verdict = "RESEARCH"
        value = data.get("estimatedValue")
        low = high = None
        if isinstance(value, Mapping):
            low = value.get("low")
            high = value.get("high")
        return cls(
            verdict=verdict,
            reasoning=data.get("reasoning") or data.get("reason") or "",
            item_name=data.get("itemName") or "",
            value_low=float(low) if isinstance(low, (int, float)) else None,
            value_high=float(high) if isinstance(high, (int, float)) else None,
            confidence=float(data.get("confidence") or 0.0),
            raw=dict(data),
        )
