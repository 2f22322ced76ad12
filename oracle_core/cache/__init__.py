"""会话级短期缓存：通用 TTL 缓存，以及基于它的套餐缓存与行情缓存。"""

from oracle_core.cache.market_cache import MarketCache
from oracle_core.cache.tier_cache import TierCache, TierInfo
from oracle_core.cache.ttl_cache import TtlCache

__all__ = ["MarketCache", "TierCache", "TierInfo", "TtlCache"]
