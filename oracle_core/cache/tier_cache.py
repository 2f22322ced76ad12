"""套餐（tier）缓存：避免在短时间内重复读取服务端的额度信息。"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from oracle_core.cache.ttl_cache import TtlCache
from oracle_core.infrastructure.storage.session_store import SessionStorage


TIER_CACHE_KEY = "oracle_tier_cache"
TIER_CACHE_TTL = 5 * 60


@dataclass(frozen=True)
class TierInfo:
    current: str
    messages_used: int = 0
    messages_limit: int = 0
    messages_remaining: int = 0

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "TierInfo":
        return cls(
            current=str(data.get("current") or "free"),
            messages_used=int(data.get("messagesUsed") or 0),
            messages_limit=int(data.get("messagesLimit") or 0),
            messages_remaining=int(data.get("messagesRemaining") or 0),
        )


class TierCache:
    def __init__(
        self,
        storage: SessionStorage,
        ttl_seconds: float = TIER_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self._cache: TtlCache[dict] = TtlCache(storage, TIER_CACHE_KEY, ttl_seconds, clock)

    def set(self, tier: Mapping[str, Any]) -> None:
        self._cache.set(dict(tier))

    def get(self) -> Optional[TierInfo]:
        data = self._cache.get()
        if not isinstance(data, dict):
            return None
        return TierInfo.from_payload(data)
