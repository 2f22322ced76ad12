"""通用的读穿透 TTL 缓存。

每条记录保存为 {"value": ..., "cachedAt": 毫秒时间戳}。
now - cachedAt < ttl 时命中，否则视为未缓存；过期记录不主动清理。
存储不可用时一律视为未命中，set 静默失败，任何方法都不会抛异常。
"""

import json
import time
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from oracle_core.infrastructure.logging.logger import logger
from oracle_core.infrastructure.storage.session_store import SessionStorage


T = TypeVar("T")


class TtlCache(Generic[T]):
    def __init__(
        self,
        storage: SessionStorage,
        namespace: str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._namespace = namespace
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock

    @property
    def namespace(self) -> str:
        return self._namespace

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _key(self, key: Optional[str]) -> str:
        return self._namespace if key is None else f"{self._namespace}:{key}"

    def set(self, value: T, key: Optional[str] = None) -> None:
        record = {"value": value, "cachedAt": self._now_ms()}
        try:
            self._storage.set_item(self._key(key), json.dumps(record, ensure_ascii=False))
        except Exception as e:
            logger.debug(
                "Cache write skipped",
                extra={"extra": {"namespace": self._namespace, "error": str(e)}},
            )

    def get(self, key: Optional[str] = None) -> Optional[T]:
        entry = self.get_entry(key)
        return entry[0] if entry else None

    def get_entry(self, key: Optional[str] = None) -> Optional[Tuple[T, int]]:
        """返回 (value, cachedAt)；未命中或已过期返回 None。"""

        try:
            raw = self._storage.get_item(self._key(key))
            if not raw:
                return None
            record = json.loads(raw)
            cached_at = int(record["cachedAt"])
            value = record["value"]
        except Exception as e:
            logger.debug(
                "Cache read treated as miss",
                extra={"extra": {"namespace": self._namespace, "error": str(e)}},
            )
            return None
        if self._now_ms() - cached_at >= self._ttl_ms:
            return None
        return value, cached_at

    def keys(self) -> List[str]:
        """当前命名空间下所有子键（含已过期的）。"""

        prefix = f"{self._namespace}:"
        try:
            return [k[len(prefix):] for k in self._storage.keys() if k.startswith(prefix)]
        except Exception as e:
            logger.debug(
                "Cache key scan skipped",
                extra={"extra": {"namespace": self._namespace, "error": str(e)}},
            )
            return []
