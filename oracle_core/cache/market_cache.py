"""行情缓存。

服务端在回复中附带 marketData 时按物品名缓存；之后的消息若提到
同一物品，就把缓存随请求带上，服务端可直接复用而不必再次拉取。
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from oracle_core.cache.ttl_cache import TtlCache
from oracle_core.intelligence.context_search import extract_keywords
from oracle_core.infrastructure.storage.session_store import SessionStorage


MARKET_CACHE_KEY = "oracle_market_cache"
MARKET_CACHE_TTL = 5 * 60


def _normalize(item_name: str) -> str:
    return " ".join(item_name.lower().split())


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class MarketCache:
    def __init__(
        self,
        storage: SessionStorage,
        ttl_seconds: float = MARKET_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self._cache: TtlCache[dict] = TtlCache(storage, MARKET_CACHE_KEY, ttl_seconds, clock)

    def set(self, market_data: Mapping[str, Any]) -> bool:
        """缓存一条行情；没有物品名的数据无法关联到消息，直接忽略。"""

        item_name = market_data.get("itemName") or market_data.get("item_name")
        if not item_name or not isinstance(item_name, str):
            return False
        result = market_data.get("result", market_data)
        self._cache.set({"itemName": item_name, "result": result}, key=_normalize(item_name))
        return True

    def get(self, item_name: str) -> Optional[Dict[str, Any]]:
        entry = self._cache.get_entry(_normalize(item_name))
        if entry is None:
            return None
        value, cached_at = entry
        return {"itemName": value["itemName"], "result": value["result"], "cachedAt": _iso(cached_at)}

    def get_relevant(self, message: str) -> Optional[Dict[str, Any]]:
        """找出消息提到的物品中最新的一条未过期行情。

        物品名整体出现在消息中，或物品名的全部关键词都出现在消息中，都算提到。
        """

        lower = " ".join((message or "").lower().split())
        if not lower:
            return None
        message_words = set(extract_keywords(lower))

        best = None
        best_at = -1
        for key in self._cache.keys():
            entry = self._cache.get_entry(key)
            if entry is None:
                continue
            value, cached_at = entry
            name_words = extract_keywords(key)
            mentioned = key in lower or (name_words and all(w in message_words for w in name_words))
            if mentioned and cached_at > best_at:
                best, best_at = value, cached_at
        if best is None:
            return None
        return {"itemName": best["itemName"], "result": best["result"], "cachedAt": _iso(best_at)}
