"""Tests for the per-URL result cache."""

from datetime import timedelta

from news_signals.cache import ResultCache
from news_signals.models import CachedResult, NewsItem
from tests.conftest import T0

URL = "https://www.moneycontrol.com/rss/marketreports.xml"


def _items(n=2):
    return [NewsItem(title=f"headline {i}", source="moneycontrol.com") for i in range(n)]


def test_hit_within_ttl(clock):
    cache = ResultCache(ttl_minutes=15, clock=clock)
    cache.put(URL, _items())
    clock.advance(minutes=15)

    # exactly at the TTL the entry is still fresh
    assert [i.title for i in cache.get(URL)] == ["headline 0", "headline 1"]


def test_expired_entry_evicted_on_lookup(clock):
    cache = ResultCache(ttl_minutes=15, clock=clock)
    cache.put(URL, _items())
    clock.advance(minutes=15, seconds=1)

    assert cache.get(URL) is None
    assert URL not in cache
    assert len(cache) == 0


def test_key_is_case_insensitive(clock):
    cache = ResultCache(ttl_minutes=15, clock=clock)
    cache.put(URL.upper(), _items(1))
    assert URL in cache
    assert len(cache.get(URL)) == 1


def test_get_returns_a_copy(clock):
    cache = ResultCache(ttl_minutes=15, clock=clock)
    cache.put(URL, _items())
    first = cache.get(URL)
    first.clear()
    assert len(cache.get(URL)) == 2


def test_clear_returns_count(clock):
    cache = ResultCache(ttl_minutes=15, clock=clock)
    cache.put(URL, _items())
    cache.put("https://economictimes.indiatimes.com/rss", _items())
    assert cache.clear() == 2
    assert cache.get(URL) is None


def test_miss_is_none(clock):
    assert ResultCache(clock=clock).get(URL) is None


def test_cached_result_expiry_boundary():
    entry = CachedResult(items=(), captured_at=T0)
    assert not entry.is_expired(10, T0 + timedelta(minutes=10))
    assert entry.is_expired(10, T0 + timedelta(minutes=10, seconds=1))
