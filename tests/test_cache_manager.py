from vizengine.cache import CacheManager, cache_key


def test_cache_hit_miss_and_invalidate() -> None:
    cache = CacheManager(redis_url="")
    key = cache_key("fp1", "chart", {"x": "region"})
    value = {"ok": True}

    assert cache.backend == "memory"
    assert cache.get(key) is None
    cache.set(key, value)
    assert cache.get(key) == value

    assert cache.invalidate_prefix("cache:v1:fp1:") == 1
    assert cache.get(key) is None


def test_cache_evicts_least_recently_used() -> None:
    cache = CacheManager(redis_url="", max_entries=2)
    cache.set("cache:v1:a", {"n": 1})
    cache.set("cache:v1:b", {"n": 2})
    assert cache.get("cache:v1:a") == {"n": 1}
    cache.set("cache:v1:c", {"n": 3})

    assert cache.get("cache:v1:b") is None
    assert cache.get("cache:v1:a") == {"n": 1}
    assert len(cache) == 2


def test_expired_entries_are_misses() -> None:
    cache = CacheManager(redis_url="")
    cache.set("cache:v1:old", {"n": 1}, ttl_seconds=-1)
    assert cache.get("cache:v1:old") is None


def test_cache_keys_are_stable_and_scoped() -> None:
    first = cache_key("abc", "chart", {"b": 2, "a": 1})
    second = cache_key("abc", "chart", {"a": 1, "b": 2})
    other = cache_key("abc", "chart", {"a": 1, "b": 3})

    assert first == second
    assert first != other
    assert first.startswith("cache:v1:abc:chart:")
    assert cache_key("def", "chart", {"a": 1, "b": 2}) != first
