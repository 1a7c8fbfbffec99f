import threading

import pytest

from decision_guardian.matching.cache import RegexResultCache


def test_key_uses_content_digest() -> None:
    first = RegexResultCache.make_key("a+", "i", "some content")
    second = RegexResultCache.make_key("a+", "i", "some content")
    other = RegexResultCache.make_key("a+", "i", "other content")

    assert first == second
    assert first != other
    assert len(first[2]) == 16


def test_get_and_put() -> None:
    cache = RegexResultCache()
    key = RegexResultCache.make_key("x", "", "text")

    assert cache.get(key) is None
    cache.put(key, False)
    assert cache.get(key) is False
    assert key in cache


def test_bulk_eviction_drops_oldest_entries() -> None:
    cache = RegexResultCache(max_size=20, evict_fraction=0.25)
    keys = [RegexResultCache.make_key(f"p{i}", "", "c") for i in range(21)]
    for key in keys:
        cache.put(key, True)

    assert len(cache) == 16
    assert all(key not in cache for key in keys[:5])
    assert all(key in cache for key in keys[5:])


def test_overwriting_existing_key_does_not_evict() -> None:
    cache = RegexResultCache(max_size=2)
    first = RegexResultCache.make_key("a", "", "c")
    second = RegexResultCache.make_key("b", "", "c")
    cache.put(first, True)
    cache.put(second, True)
    cache.put(first, False)

    assert len(cache) == 2
    assert cache.get(first) is False


def test_concurrent_puts_stay_bounded() -> None:
    cache = RegexResultCache(max_size=50)

    def fill(offset: int) -> None:
        for i in range(200):
            cache.put(RegexResultCache.make_key(f"{offset}-{i}", "", "c"), True)

    threads = [threading.Thread(target=fill, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) <= 50


def test_invalid_size() -> None:
    with pytest.raises(ValueError):
        RegexResultCache(max_size=0)
