# wealthdesk/services/valuation/cache.py
"""
Injected cache for loaded price/FX series.

Loading prices for a profile means one query per table over the whole chart
range, and the dashboard asks for holdings, history and account totals in
quick succession. The cache keeps the last PriceSeries per scope (usually a
profile) and hands it out again while it is still valid.

An entry is reused only if ALL of these hold:
    - the requested instrument set equals the cached one
    - the cached [start, end] range covers the requested range
    - the entry is younger than the TTL (default 5 minutes)

Otherwise the loader is called and the entry replaced. Writes to a ledger call
invalidate(scope) so edits show up immediately.

Thread Safety:
    Uses threading.Lock around the entry table. The loader runs outside the
    lock; two concurrent misses for the same scope may both load, and the
    last one stored wins.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date

from wealthdesk.config import settings
from wealthdesk.services.valuation.price_series import PriceSeries

logger = logging.getLogger(__name__)

# Bounded so a burst of distinct scopes cannot grow memory without limit
PRICE_CACHE_MAX_SCOPES = 256

PriceLoader = Callable[[frozenset[str], date, date], PriceSeries]


@dataclass(frozen=True)
class _CacheEntry:
    instruments: frozenset[str]
    start: date
    end: date
    loaded_at: float
    series: PriceSeries

    def covers(self, instruments: frozenset[str], start: date, end: date) -> bool:
        return self.instruments == instruments and self.start <= start and self.end >= end


class PriceDataCache:
    """
    Thread-safe, TTL-bounded cache of PriceSeries keyed by scope.

    Args:
        ttl_seconds: Maximum entry age (default from settings)
        max_scopes: Maximum number of scopes kept (LRU eviction)
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
            self,
            ttl_seconds: int | None = None,
            max_scopes: int = PRICE_CACHE_MAX_SCOPES,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.price_cache_ttl_seconds
        self._max_scopes = max_scopes
        self._clock = clock
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_load(
            self,
            scope: str,
            instruments: Iterable[str],
            start: date,
            end: date,
            loader: PriceLoader,
    ) -> PriceSeries:
        """
        Return the cached series for a scope, loading it when stale.

        Args:
            scope: Cache scope (e.g. "profile:42")
            instruments: Tickers the caller needs prices for
            start: First date needed
            end: Last date needed
            loader: Called as loader(instruments, start, end) on a miss

        Returns:
            PriceSeries covering at least [start, end] for the instruments
        """
        wanted = frozenset(t.upper() for t in instruments)

        cached = self._get_valid(scope, wanted, start, end)
        if cached is not None:
            return cached

        series = loader(wanted, start, end)

        with self._lock:
            self.misses += 1
            self._entries.pop(scope, None)
            while len(self._entries) >= self._max_scopes:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Price cache evicted {evicted} (LRU)")
            self._entries[scope] = _CacheEntry(
                instruments=wanted,
                start=start,
                end=end,
                loaded_at=self._clock(),
                series=series,
            )

        logger.debug(
            f"Price cache loaded {scope}: {len(wanted)} instruments, {start} → {end}"
        )
        return series

    def _get_valid(
            self,
            scope: str,
            instruments: frozenset[str],
            start: date,
            end: date,
    ) -> PriceSeries | None:
        with self._lock:
            entry = self._entries.get(scope)
            if entry is None:
                return None

            if self._clock() - entry.loaded_at >= self._ttl:
                del self._entries[scope]
                logger.debug(f"Price cache expired for {scope}")
                return None

            if not entry.covers(instruments, start, end):
                return None

            self._entries.move_to_end(scope)
            self.hits += 1
            return entry.series

    def invalidate(self, scope: str | None = None) -> int:
        """
        Drop the entry of one scope, or every entry when scope is None.

        Returns:
            Number of entries dropped
        """
        with self._lock:
            if scope is None:
                count = len(self._entries)
                self._entries.clear()
            else:
                count = 1 if self._entries.pop(scope, None) is not None else 0

        if count:
            logger.debug(f"Invalidated {count} price cache entries (scope={scope or 'all'})")
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def profile_scope(profile_id: int) -> str:
    """Cache scope of a profile's ledger."""
    return f"profile:{profile_id}"
