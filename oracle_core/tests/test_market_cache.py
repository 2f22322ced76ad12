from oracle_core.cache.market_cache import MarketCache


def test_ignores_market_data_without_item_name(storage, clock):
    cache = MarketCache(storage, clock=clock)
    assert cache.set({"price": 10}) is False
    assert cache.get_relevant("anything at all") is None


def test_relevant_entry_by_name_substring(storage, clock):
    cache = MarketCache(storage, clock=clock)
    cache.set({"itemName": "Charizard Base Set", "result": {"median": 420}})
    hint = cache.get_relevant("is my charizard base set still hot?")
    assert hint["itemName"] == "Charizard Base Set"
    assert hint["result"] == {"median": 420}
    assert hint["cachedAt"].endswith("Z")


def test_relevant_entry_by_all_keywords(storage, clock):
    cache = MarketCache(storage, clock=clock)
    cache.set({"itemName": "Jordan Rookie", "result": {"median": 5000}})
    assert cache.get_relevant("rookie card of jordan, sell now?")["itemName"] == "Jordan Rookie"
    assert cache.get_relevant("what about the rookie?") is None


def test_freshest_match_wins_and_expiry(storage, clock):
    cache = MarketCache(storage, ttl_seconds=300, clock=clock)
    cache.set({"itemName": "Pikachu", "result": {"median": 1}})
    clock.advance(100)
    cache.set({"itemName": "Pikachu Illustrator", "result": {"median": 2}})
    assert cache.get_relevant("pikachu illustrator value")["itemName"] == "Pikachu Illustrator"
    clock.advance(250)
    # 第一条已过期，第二条仍有效
    assert cache.get("pikachu") is None
    assert cache.get("Pikachu Illustrator")["result"] == {"median": 2}
