# wealthdesk/services/valuation/price_series.py
"""
Date-indexed price and FX tables with carry-forward lookup.

Market data is sparse: no rows on weekends, holidays, or before an
instrument was listed. Every lookup answers "the latest known value on or
before this date", using a sorted index and bisect for O(log n) per query,
since history reconstruction asks for every (date × held instrument) pair.

Usage:
    series = PriceSeries.from_observations(prices, fx_rates)
    series.price_on_or_before("AAPL", date(2024, 3, 9))  # Friday's close
    series.fx_on_or_before(date(2024, 3, 9))
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from wealthdesk.services.valuation.types import FxObservation, PriceObservation


class _DateIndex:
    """Sorted parallel (dates, values) arrays for one series."""

    __slots__ = ("dates", "values")

    def __init__(self, points: dict[date, Decimal]) -> None:
        self.dates: list[date] = sorted(points)
        self.values: list[Decimal] = [points[d] for d in self.dates]

    def on_or_before(self, on_date: date) -> tuple[date, Decimal] | None:
        idx = bisect_right(self.dates, on_date)
        if idx == 0:
            return None
        return self.dates[idx - 1], self.values[idx - 1]

    def latest(self) -> tuple[date, Decimal] | None:
        if not self.dates:
            return None
        return self.dates[-1], self.values[-1]

    def __len__(self) -> int:
        return len(self.dates)


class PriceSeries:
    """
    Read-only carry-forward view over close prices and one FX series.

    Tickers are normalized to uppercase. When the feed contains several
    observations for the same (ticker, date), the last one wins.
    """

    def __init__(
            self,
            prices: dict[str, dict[date, Decimal]] | None = None,
            fx_rates: dict[date, Decimal] | None = None,
    ) -> None:
        self._prices: dict[str, _DateIndex] = {
            ticker.upper(): _DateIndex(points)
            for ticker, points in (prices or {}).items()
            if points
        }
        self._fx = _DateIndex(fx_rates or {})

    @classmethod
    def from_observations(
            cls,
            prices: Iterable[PriceObservation] = (),
            fx_rates: Iterable[FxObservation] = (),
    ) -> PriceSeries:
        """Index raw observation rows."""
        by_ticker: dict[str, dict[date, Decimal]] = {}
        for obs in prices:
            by_ticker.setdefault(obs.ticker.upper(), {})[obs.date] = obs.close_price

        fx_points: dict[date, Decimal] = {}
        for obs in fx_rates:
            fx_points[obs.date] = obs.rate

        return cls(by_ticker, fx_points)

    @classmethod
    def empty(cls) -> PriceSeries:
        return cls()

    # =========================================================================
    # PRICE LOOKUPS
    # =========================================================================

    def price_observation_on_or_before(
            self,
            ticker: str,
            on_date: date,
    ) -> tuple[date, Decimal] | None:
        """Latest (date, close) with date ≤ on_date, or None if unpriced."""
        index = self._prices.get(ticker.upper())
        if index is None:
            return None
        return index.on_or_before(on_date)

    def price_on_or_before(self, ticker: str, on_date: date) -> Decimal | None:
        found = self.price_observation_on_or_before(ticker, on_date)
        return found[1] if found else None

    def latest_price(self, ticker: str) -> tuple[date, Decimal] | None:
        index = self._prices.get(ticker.upper())
        if index is None:
            return None
        return index.latest()

    # =========================================================================
    # FX LOOKUPS
    # =========================================================================

    def fx_observation_on_or_before(self, on_date: date) -> tuple[date, Decimal] | None:
        """Latest (date, rate) with date ≤ on_date, or None if no rate known."""
        return self._fx.on_or_before(on_date)

    def fx_on_or_before(self, on_date: date) -> Decimal | None:
        found = self._fx.on_or_before(on_date)
        return found[1] if found else None

    def latest_fx(self) -> tuple[date, Decimal] | None:
        return self._fx.latest()

    # =========================================================================
    # CALENDAR
    # =========================================================================

    @property
    def tickers(self) -> frozenset[str]:
        return frozenset(self._prices)

    @property
    def has_fx(self) -> bool:
        return len(self._fx) > 0

    def price_dates(
            self,
            tickers: Iterable[str] | None = None,
            start: date | None = None,
            end: date | None = None,
    ) -> list[date]:
        """
        Sorted union of dates on which any (selected) instrument has a price.

        This is the default reconstruction calendar.
        """
        selected = (
            self._prices.values()
            if tickers is None
            else [self._prices[t.upper()] for t in tickers if t.upper() in self._prices]
        )
        dates: set[date] = set()
        for index in selected:
            dates.update(index.dates)
        return sorted(
            d for d in dates
            if (start is None or d >= start) and (end is None or d <= end)
        )

    def __repr__(self) -> str:
        return f"PriceSeries(tickers={len(self._prices)}, fx_points={len(self._fx)})"
