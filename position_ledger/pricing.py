"""
Position Ledger - Price Resolution.

============================================================
PURPOSE
============================================================
The ledger never calls a network. It receives current prices
through a PriceResolver injected by the caller.

============================================================
COMPONENTS
============================================================
- PriceCache: get/set capability with freshness
- InMemoryTTLCache: in-process cache with an injected clock
- PriceResolver: resolve(symbol, fallback_price) -> PriceQuote
- CachedPriceResolver: one quote source behind a price cache
  and a negative cache, degrading to the fallback price
- FixedPriceResolver: deterministic prices (tests, simulation)

============================================================
FAILURE SEMANTICS
============================================================
resolve() never raises. Any failure of the quote source
degrades to PriceQuote(fallback, AVG_ENTRY, is_estimated=True)
and is remembered in the negative cache for its TTL.

============================================================
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from core.clock import ClockProtocol, SystemClock

from .config import PriceCacheConfig
from .numeric import is_positive_finite, to_finite_or_zero
from .types import PriceQuote, PriceSource


logger = logging.getLogger(__name__)

QuoteSource = Callable[[str], Optional[float]]


# ============================================================
# CACHE
# ============================================================

@dataclass(frozen=True)
class CacheEntry:
    value: Any
    age_seconds: float
    is_fresh: bool


class PriceCache(ABC):
    """Key/value cache that reports freshness on read."""

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key, or None if never set."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Forget key; a missing key is ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryTTLCache(PriceCache):
    """
    Thread-safe in-process cache.

    Entries are kept after expiry and reported as stale; the
    reader decides what to do with a stale value. Once the cache
    holds max_entries keys, a new key first evicts every expired
    entry and then, if still full, the oldest one.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Optional[ClockProtocol] = None,
        max_entries: Optional[int] = None,
    ):
        self._ttl_seconds = ttl_seconds
        self._clock = clock or SystemClock()
        self._max_entries = max_entries
        self._entries: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            hit = self._entries.get(key)
        if hit is None:
            return None
        value, stored_at = hit
        age = max(self._clock.timestamp() - stored_at, 0.0)
        return CacheEntry(value=value, age_seconds=age, is_fresh=age < self._ttl_seconds)

    def set(self, key: str, value: Any) -> None:
        now = self._clock.timestamp()
        with self._lock:
            if (
                self._max_entries is not None
                and key not in self._entries
                and len(self._entries) >= self._max_entries
            ):
                self._evict(now)
            self._entries[key] = (value, now)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict(self, now: float) -> None:
        # caller holds the lock
        expired = [
            key for key, (_, stored_at) in self._entries.items()
            if now - stored_at >= self._ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest]
        logger.debug(f"Evicted {len(expired)} expired price cache entries")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def create_price_caches(
    config: Optional[PriceCacheConfig] = None,
    clock: Optional[ClockProtocol] = None,
) -> tuple:
    """Build the (price_cache, negative_cache) pair from configuration."""
    config = config or PriceCacheConfig()
    return (
        InMemoryTTLCache(config.price_ttl_seconds, clock, config.max_entries),
        InMemoryTTLCache(config.negative_ttl_seconds, clock, config.max_entries),
    )


# ============================================================
# RESOLVERS
# ============================================================

class PriceResolver(ABC):
    """Resolves the current USD price of a symbol."""

    @abstractmethod
    def resolve(self, symbol: str, fallback_price_usd: float) -> PriceQuote:
        """
        Resolve a price. Must not raise.

        Args:
            symbol: Upper-case ticker
            fallback_price_usd: Average entry price used when no
                price can be found
        """
        pass

    def invalidate(self, symbol: str) -> None:
        """Drop anything remembered about symbol. No-op by default."""
        pass


def cash_quote() -> PriceQuote:
    return PriceQuote(price_usd=1.0, source=PriceSource.AVG_ENTRY, is_estimated=False)


def fallback_quote(fallback_price_usd: float) -> PriceQuote:
    return PriceQuote(
        price_usd=to_finite_or_zero(fallback_price_usd),
        source=PriceSource.AVG_ENTRY,
        is_estimated=True,
    )


class FixedPriceResolver(PriceResolver):
    """Serves prices from a mapping; missing symbols degrade to the fallback."""

    def __init__(self, prices: Dict[str, float], source: PriceSource = PriceSource.BINANCE):
        self._prices = {k.upper(): v for k, v in prices.items()}
        self._source = source

    def resolve(self, symbol: str, fallback_price_usd: float) -> PriceQuote:
        if symbol == "CASH":
            return cash_quote()
        price = self._prices.get(symbol.upper())
        if not is_positive_finite(price):
            return fallback_quote(fallback_price_usd)
        return PriceQuote(
            price_usd=float(price),
            source=self._source,
            is_estimated=self._source == PriceSource.DB_CACHE,
        )


class CachedPriceResolver(PriceResolver):
    """
    One quote source behind a price cache and a negative cache.

    Lookup order:
    1. CASH -> 1.0
    2. Fresh negative-cache entry -> fallback
    3. Fresh price-cache entry -> cached price
    4. quote_source(symbol) -> cache and return
    5. Failure -> mark negative cache, return fallback
    """

    def __init__(
        self,
        quote_source: QuoteSource,
        source: PriceSource,
        cache: PriceCache,
        negative_cache: PriceCache,
        namespace: str = "",
    ):
        """
        Args:
            quote_source: Returns a price or None; may raise
            source: Label reported for prices from quote_source
            cache: Positive price cache
            negative_cache: Remembers failed lookups
            namespace: Key prefix, e.g. the account id when the
                quote source is account-scoped
        """
        self._quote_source = quote_source
        self._source = source
        self._cache = cache
        self._negative_cache = negative_cache
        self._namespace = namespace

    def _key(self, symbol: str) -> str:
        return f"{self._namespace}:{symbol}" if self._namespace else symbol

    def _quote_for(self, price: float) -> PriceQuote:
        return PriceQuote(
            price_usd=price,
            source=self._source,
            is_estimated=self._source in (PriceSource.DB_CACHE, PriceSource.AVG_ENTRY),
        )

    def invalidate(self, symbol: str) -> None:
        """Forget the cached price and any remembered failure for symbol."""
        key = self._key(symbol.strip().upper())
        self._cache.delete(key)
        self._negative_cache.delete(key)

    def resolve(self, symbol: str, fallback_price_usd: float) -> PriceQuote:
        symbol = symbol.strip().upper()
        if symbol == "CASH":
            return cash_quote()

        key = self._key(symbol)

        negative = self._negative_cache.get(key)
        if negative is not None and negative.is_fresh:
            return fallback_quote(fallback_price_usd)

        cached = self._cache.get(key)
        if cached is not None and cached.is_fresh:
            return self._quote_for(cached.value)

        try:
            price = self._quote_source(symbol)
        except Exception as e:
            logger.warning(f"Price lookup for {symbol} failed: {e}")
            price = None

        if not is_positive_finite(price):
            logger.warning(f"No price for {symbol}; using average entry price")
            self._negative_cache.set(key, "all_sources_failed")
            return fallback_quote(fallback_price_usd)

        price = float(price)
        self._cache.set(key, price)
        return self._quote_for(price)
