"""
Tests for Price Resolution.

============================================================
PURPOSE
============================================================
1. TTL cache freshness with a mock clock
2. Cached resolver lookup order
3. Degradation to the average entry price

============================================================
"""

from datetime import datetime, timezone

import pytest

from core.clock import MockClock
from position_ledger import (
    CachedPriceResolver,
    InMemoryTTLCache,
    PriceCacheConfig,
    PriceSource,
    create_price_caches,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


class CountingSource:
    """Quote source that records calls."""

    def __init__(self, prices=None, error=None):
        self.prices = prices or {}
        self.error = error
        self.calls = []

    def __call__(self, symbol):
        self.calls.append(symbol)
        if self.error:
            raise self.error
        return self.prices.get(symbol)


def make_resolver(source, clock, namespace="", price_source=PriceSource.BINANCE):
    cache, negative = create_price_caches(
        PriceCacheConfig(price_ttl_seconds=30, negative_ttl_seconds=60), clock
    )
    return CachedPriceResolver(source, price_source, cache, negative, namespace=namespace)


# ============================================================
# CACHE
# ============================================================

class TestInMemoryTTLCache:

    def test_miss(self, clock):
        assert InMemoryTTLCache(10, clock).get("BTC") is None

    def test_fresh_then_stale(self, clock):
        cache = InMemoryTTLCache(10, clock)
        cache.set("BTC", 100.0)

        clock.advance(seconds=9)
        assert cache.get("BTC").is_fresh

        clock.advance(seconds=1)
        entry = cache.get("BTC")
        assert entry.value == 100.0
        assert not entry.is_fresh
        assert entry.age_seconds == pytest.approx(10)

    def test_zero_ttl_never_fresh(self, clock):
        cache = InMemoryTTLCache(0, clock)
        cache.set("BTC", 1.0)
        assert not cache.get("BTC").is_fresh

    def test_clear(self, clock):
        cache = InMemoryTTLCache(10, clock)
        cache.set("A", 1)
        cache.set("B", 2)
        assert len(cache) == 2

        cache.clear()
        assert len(cache) == 0

    def test_delete(self, clock):
        cache = InMemoryTTLCache(10, clock)
        cache.set("BTC", 1.0)

        cache.delete("BTC")
        cache.delete("ETH")

        assert cache.get("BTC") is None
        assert len(cache) == 0

    def test_full_cache_drops_expired_first(self, clock):
        cache = InMemoryTTLCache(10, clock, max_entries=2)
        cache.set("A", 1)
        clock.advance(seconds=11)
        cache.set("B", 2)

        cache.set("C", 3)

        assert len(cache) == 2
        assert cache.get("A") is None
        assert cache.get("B").value == 2

    def test_full_cache_drops_oldest(self, clock):
        cache = InMemoryTTLCache(100, clock, max_entries=2)
        cache.set("A", 1)
        clock.advance(seconds=1)
        cache.set("B", 2)
        clock.advance(seconds=1)

        cache.set("C", 3)

        assert len(cache) == 2
        assert cache.get("A") is None
        assert cache.get("C").value == 3

    def test_overwrite_does_not_evict(self, clock):
        cache = InMemoryTTLCache(100, clock, max_entries=2)
        cache.set("A", 1)
        cache.set("B", 2)

        cache.set("A", 5)

        assert len(cache) == 2
        assert cache.get("B").value == 2


# ============================================================
# RESOLVER
# ============================================================

class TestCachedPriceResolver:

    def test_cash_is_one(self, clock):
        source = CountingSource()
        quote = make_resolver(source, clock).resolve("CASH", 0)

        assert quote.price_usd == 1.0
        assert not quote.is_estimated
        assert source.calls == []

    def test_resolves_and_caches(self, clock):
        source = CountingSource({"BTC": 42000})
        resolver = make_resolver(source, clock)

        first = resolver.resolve("btc", 100)
        second = resolver.resolve("BTC", 100)

        assert first.price_usd == 42000
        assert first.source == PriceSource.BINANCE
        assert not first.is_estimated
        assert second == first
        assert source.calls == ["BTC"]

    def test_stale_entry_refetched(self, clock):
        source = CountingSource({"BTC": 42000})
        resolver = make_resolver(source, clock)
        resolver.resolve("BTC", 100)

        clock.advance(seconds=31)
        resolver.resolve("BTC", 100)

        assert source.calls == ["BTC", "BTC"]

    def test_missing_price_falls_back_and_is_remembered(self, clock):
        source = CountingSource({})
        resolver = make_resolver(source, clock)

        quote = resolver.resolve("XYZ", 2.5)
        resolver.resolve("XYZ", 2.5)

        assert quote.price_usd == 2.5
        assert quote.source == PriceSource.AVG_ENTRY
        assert quote.is_estimated
        assert source.calls == ["XYZ"]

    def test_negative_entry_expires(self, clock):
        source = CountingSource({})
        resolver = make_resolver(source, clock)
        resolver.resolve("XYZ", 1)

        clock.advance(seconds=61)
        resolver.resolve("XYZ", 1)

        assert source.calls == ["XYZ", "XYZ"]

    def test_source_exception_never_raises(self, clock):
        source = CountingSource(error=RuntimeError("boom"))
        quote = make_resolver(source, clock).resolve("BTC", 7)

        assert quote.price_usd == 7
        assert quote.source == PriceSource.AVG_ENTRY

    @pytest.mark.parametrize("bad", [0, -1, float("nan")])
    def test_non_positive_price_is_a_failure(self, clock, bad):
        quote = make_resolver(CountingSource({"BTC": bad}), clock).resolve("BTC", 9)
        assert quote.price_usd == 9
        assert quote.is_estimated

    def test_db_cache_source_is_estimated(self, clock):
        resolver = make_resolver(
            CountingSource({"BTC": 50}), clock, price_source=PriceSource.DB_CACHE
        )
        quote = resolver.resolve("BTC", 1)

        assert quote.source == PriceSource.DB_CACHE
        assert quote.is_estimated

    def test_namespaces_share_caches_without_collision(self, clock):
        cache, negative = create_price_caches(PriceCacheConfig(), clock)
        a = CachedPriceResolver(lambda s: 10.0, PriceSource.DB_CACHE, cache, negative, "acct-a")
        b = CachedPriceResolver(lambda s: 20.0, PriceSource.DB_CACHE, cache, negative, "acct-b")

        assert a.resolve("BTC", 0).price_usd == 10.0
        assert b.resolve("BTC", 0).price_usd == 20.0
        assert a.resolve("BTC", 0).price_usd == 10.0

    def test_invalidate_drops_cached_price(self, clock):
        source = CountingSource({"BTC": 100})
        resolver = make_resolver(source, clock, namespace="acct-1")
        resolver.resolve("BTC", 1)

        source.prices["BTC"] = 200
        assert resolver.resolve("BTC", 1).price_usd == 100

        resolver.invalidate("btc")
        assert resolver.resolve("BTC", 1).price_usd == 200
        assert len(source.calls) == 2

    def test_invalidate_drops_remembered_failure(self, clock):
        source = CountingSource()
        resolver = make_resolver(source, clock)
        assert resolver.resolve("ETH", 50).source == PriceSource.AVG_ENTRY

        source.prices["ETH"] = 300
        resolver.invalidate("ETH")

        quote = resolver.resolve("ETH", 50)
        assert quote.price_usd == 300
        assert quote.source == PriceSource.BINANCE

    def test_invalidate_is_scoped_to_namespace(self, clock):
        cache, negative = create_price_caches(PriceCacheConfig(), clock)
        a = CachedPriceResolver(CountingSource({"BTC": 10}), PriceSource.DB_CACHE, cache, negative, "acct-a")
        b = CachedPriceResolver(CountingSource({"BTC": 20}), PriceSource.DB_CACHE, cache, negative, "acct-b")
        a.resolve("BTC", 0)
        b.resolve("BTC", 0)

        a.invalidate("BTC")

        assert cache.get("acct-a:BTC") is None
        assert cache.get("acct-b:BTC").value == 20
