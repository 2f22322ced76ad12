"""一次性的跨组件信号槽。

对话之外的界面（例如用户点开了某个数据源报告卡片）可以往槽里写一条
上下文，下一次发送消息时编排器读取并清空它。槽只有一个位置，后写
覆盖先写；从未被读取就被覆盖的信号直接丢失。
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from oracle_core.infrastructure.logging.logger import logger
from oracle_core.infrastructure.storage.session_store import SessionStorage


PROVIDER_REPORT_KEY = "oracle_context_event"


@dataclass(frozen=True)
class SignalEvent:
    payload: Dict[str, Any]
    timestamp: int

    def age_seconds(self, now: float) -> float:
        return now - self.timestamp / 1000


class SignalChannel:
    def __init__(
        self,
        storage: SessionStorage,
        key: str = PROVIDER_REPORT_KEY,
        max_age_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._key = key
        self._max_age = max_age_seconds
        self._clock = clock

    def publish(self, payload: Mapping[str, Any]) -> None:
        record = {"payload": dict(payload), "timestamp": int(self._clock() * 1000)}
        try:
            self._storage.set_item(self._key, json.dumps(record, ensure_ascii=False))
        except Exception as e:
            logger.debug("Signal publish skipped", extra={"extra": {"key": self._key, "error": str(e)}})

    def consume(self) -> Optional[SignalEvent]:
        """读取并清空信号槽。过期或损坏的信号同样被清空，返回 None。"""

        try:
            raw = self._storage.get_item(self._key)
            if raw is None:
                return None
            self._storage.remove_item(self._key)
            record = json.loads(raw)
            event = SignalEvent(payload=dict(record["payload"]), timestamp=int(record["timestamp"]))
        except Exception as e:
            logger.debug("Signal consume treated as empty", extra={"extra": {"key": self._key, "error": str(e)}})
            return None
        if self._max_age is not None and event.age_seconds(self._clock()) > self._max_age:
            logger.info("Discarded stale signal", extra={"extra": {"key": self._key}})
            return None
        return event
