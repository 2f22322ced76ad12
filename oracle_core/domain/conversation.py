"""会话状态与生命周期的领域模型。

ConversationSession 是当前会话唯一的可变状态持有者，对外只暴露
语义化的方法（append_user_turn / begin_send / end_send / hydrate ...），
编排器与生命周期管理器都通过它修改会话。

状态流转::

    UNINITIALIZED -> HYDRATING -> IDLE <-> SENDING
    IDLE -> SWITCHING -> IDLE
    任意状态 -> IDLE（出错恢复）

SENDING 期间拒绝切换会话（begin_hydrate 返回 None），在途回复不会
因为一次失败的切换而丢失。

generation 在每次重置或开始加载会话时递增。发送和加载开始时领取的
ticket 就是当时的 generation，结果返回时若 generation 已变化，说明
已有更新的操作接管了会话，该结果被丢弃而不会写进别的会话。
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence, Tuple, Union

from oracle_core.domain.models import ChatMessage, Energy, QuickChip
from oracle_core.infrastructure.logging.logger import logger


SessionState = Literal["UNINITIALIZED", "HYDRATING", "IDLE", "SENDING", "SWITCHING"]

# 允许发起发送的状态；HYDRATING/SWITCHING 期间消息列表即将被整体替换
_SENDABLE_STATES = ("UNINITIALIZED", "IDLE")


@dataclass(frozen=True)
class PendingIdentity:
    """服务端尚未确认的会话。"""

    @property
    def conversation_id(self) -> None:
        return None


@dataclass(frozen=True)
class ConfirmedIdentity:
    conversation_id: str


ConversationIdentity = Union[PendingIdentity, ConfirmedIdentity]


@dataclass
class ConversationSession:
    state: SessionState = "UNINITIALIZED"
    identity: ConversationIdentity = field(default_factory=PendingIdentity)
    turn_count: int = 0
    generation: int = 0
    current_energy: Energy = "neutral"
    quick_chips: List[QuickChip] = field(default_factory=list)
    scan_count: int = 0
    vault_count: int = 0
    _messages: List[ChatMessage] = field(default_factory=list)

    # ---- 只读视图 ----
    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def conversation_id(self) -> Optional[str]:
        return self.identity.conversation_id

    @property
    def is_busy(self) -> bool:
        return self.state == "SENDING"

    # ---- 发送 ----
    def begin_send(self) -> Optional[int]:
        """尝试进入 SENDING，返回本次发送的 ticket；忙碌时返回 None。"""

        if self.state not in _SENDABLE_STATES:
            return None
        self.state = "SENDING"
        return self.generation

    def end_send(self, ticket: int) -> None:
        if ticket == self.generation and self.state == "SENDING":
            self.state = "IDLE"

    def append_user_turn(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self.turn_count += 1

    def append_assistant_turn(self, message: ChatMessage, ticket: Optional[int] = None) -> bool:
        """追加助手消息；ticket 过期（会话已切换）时丢弃并返回 False。"""

        if ticket is not None and ticket != self.generation:
            logger.warning(
                "Dropped reply for a conversation that is no longer active",
                extra={"extra": {"ticket": ticket, "generation": self.generation}},
            )
            return False
        self._messages.append(message)
        self.turn_count += 1
        return True

    def confirm_identity(self, conversation_id: Optional[str], ticket: Optional[int] = None) -> None:
        """把 pending 身份确认为服务端下发的 id，每个生命周期只确认一次。"""

        if not conversation_id:
            return
        if ticket is not None and ticket != self.generation:
            return
        if isinstance(self.identity, ConfirmedIdentity):
            if self.identity.conversation_id != conversation_id:
                logger.warning(
                    "Ignoring conversation id change on a confirmed conversation",
                    extra={"extra": {
                        "conversation_id": self.identity.conversation_id,
                        "received_id": conversation_id,
                    }},
                )
            return
        self.identity = ConfirmedIdentity(conversation_id)

    # ---- 生命周期 ----
    def is_current(self, ticket: int) -> bool:
        return ticket == self.generation

    def reset(self) -> int:
        """清空为一个新的 pending 会话，返回新的 generation。"""

        self.generation += 1
        self.identity = PendingIdentity()
        self._messages = []
        self.turn_count = 0
        self.current_energy = "neutral"
        self.state = "IDLE"
        return self.generation

    def begin_hydrate(self, switching: bool = False) -> Optional[int]:
        """开始加载会话内容，返回本次加载的 ticket。

        有请求在途时拒绝切换并返回 None，在途请求和当前会话都不受影响。
        切换期间保持 SWITCHING，首次加载为 HYDRATING，两者都不允许发送。
        更晚的加载或 reset() 会让之前的 ticket 失效。
        """

        if self.state == "SENDING":
            return None
        self.generation += 1
        self.state = "SWITCHING" if switching else "HYDRATING"
        return self.generation

    def hydrate(
        self,
        conversation_id: str,
        messages: Sequence[ChatMessage],
        ticket: Optional[int] = None,
    ) -> bool:
        """用服务端的会话内容整体替换本地状态；ticket 已失效时不做任何修改。"""

        if ticket is not None and ticket != self.generation:
            logger.warning(
                "Dropped conversation load superseded by a newer one",
                extra={"extra": {
                    "conversation_id": conversation_id,
                    "ticket": ticket,
                    "generation": self.generation,
                }},
            )
            return False
        self.identity = ConfirmedIdentity(conversation_id)
        self._messages = list(messages)
        self.turn_count = len(self._messages)
        self.state = "IDLE"
        return True

    def recover(self, ticket: Optional[int] = None) -> None:
        """出错后回到 IDLE；ticket 已失效时状态已由更新的操作接管，不做修改。"""

        if ticket is not None and ticket != self.generation:
            return
        self.state = "IDLE"
