# wealthdesk/services/valuation/history_calculator.py
"""
Valuation history reconstruction (time series for charts).

Holdings CHANGE over time as buys and sells occur, so today's holdings cannot
simply be priced at historical dates. For every date in the series the
holdings must equal a full replay of the transactions dated on or before it.

Rolling State pattern:
    Instead of replaying the ledger once per date (O(D*T)), the transactions
    are sorted once and a single running state is advanced through them,
    applying only the transactions dated since the previous point and then
    taking a snapshot (O(D+T)). The result is identical to a full replay per
    date because replay order is deterministic.

Calendars:
    trading  - every date on which any held instrument has a price (default)
    daily    - every calendar day
    weekly   - Fridays, plus the end date
    monthly  - month ends, plus the end date
"""

from __future__ import annotations

import calendar as _calendar
import logging
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from decimal import Decimal

from wealthdesk.services.exceptions import InvalidCalendarError, InvalidDateSeriesError
from wealthdesk.services.valuation.calculators import ValueCalculator
from wealthdesk.services.valuation.ledger import CostBasisLedger
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import AnomalyReporter, CollectingAnomalyReporter
from wealthdesk.services.valuation.types import (
    ZERO,
    HoldingState,
    Transaction,
    ValuationSeries,
)

logger = logging.getLogger(__name__)

CALENDARS = ("trading", "daily", "weekly", "monthly")


class ValuationReconstructor:
    """
    Reconstructs invested amount and market value over a date series.

    Attributes:
        _ledger: Cost-basis replay used to advance the rolling state
        _value_calc: Values each open holding at a snapshot date
    """

    def __init__(
            self,
            ledger: CostBasisLedger | None = None,
            value_calculator: ValueCalculator | None = None,
    ) -> None:
        self._ledger = ledger if ledger is not None else CostBasisLedger()
        self._value_calc = value_calculator if value_calculator is not None else ValueCalculator()

    def reconstruct(
            self,
            transactions: Iterable[Transaction],
            price_series: PriceSeries,
            dates: Sequence[date],
            reporter: AnomalyReporter | None = None,
    ) -> ValuationSeries:
        """
        Build the valuation series for the given dates.

        Args:
            transactions: Ledger rows of the scope, in any order
            price_series: Carry-forward prices and FX
            dates: Strictly ascending, unique dates to produce points for
            reporter: Receives anomalies; they are also attached to the result

        Returns:
            ValuationSeries aligned 1:1 with dates. Dates before the first
            trade give 0 invested and 0 market value.

        Raises:
            InvalidDateSeriesError: If dates are not strictly ascending
        """
        self.validate_dates(dates)

        collector = CollectingAnomalyReporter(forward_to=reporter)
        series = ValuationSeries()

        ordered = self._ledger.sort_transactions(transactions)
        state: dict[str, HoldingState] = {}
        txn_index = 0
        num_txns = len(ordered)

        for target_date in dates:
            # Apply everything dated on or before the target
            while txn_index < num_txns and ordered[txn_index].trade_date <= target_date:
                self._ledger.apply(state, ordered[txn_index], collector)
                txn_index += 1

            invested, market_value, unpriced = self._snapshot(
                state, target_date, price_series, collector
            )
            series.append(target_date, invested, market_value, unpriced)

        series.anomalies = collector.anomalies

        logger.debug(
            f"Reconstructed {len(series)} points from {num_txns} transactions",
            extra={"anomalies": len(collector)},
        )
        return series

    def _snapshot(
            self,
            state: dict[str, HoldingState],
            on_date: date,
            price_series: PriceSeries,
            reporter: AnomalyReporter,
    ) -> tuple[Decimal, Decimal, int]:
        invested = ZERO
        market_value = ZERO
        unpriced = 0

        for holding in state.values():
            if not holding.is_open:
                continue
            valuation = self._value_calc.value(holding, on_date, price_series, reporter)
            invested += holding.total_invested
            market_value += valuation.market_value
            if not valuation.is_priced:
                unpriced += 1

        return invested, market_value, unpriced

    @staticmethod
    def validate_dates(dates: Sequence[date]) -> None:
        for previous, current in zip(dates, dates[1:]):
            if current <= previous:
                raise InvalidDateSeriesError(previous, current)


# =============================================================================
# CALENDARS
# =============================================================================

def calendar_dates(start: date, end: date) -> list[date]:
    """Every calendar day from start to end inclusive."""
    if end < start:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def trading_dates(
        price_series: PriceSeries,
        start: date,
        end: date,
        tickers: Iterable[str] | None = None,
        anchor_dates: Iterable[date] = (),
) -> list[date]:
    """
    Dates in [start, end] on which any of the tickers has a price.

    anchor_dates (typically trade dates and the range end) are merged in, so
    a ledger of instruments without any close still gets points, valued at
    cost.
    """
    dates = set(price_series.price_dates(tickers=tickers, start=start, end=end))
    dates.update(d for d in anchor_dates if start <= d <= end)
    return sorted(dates)


def weekly_dates(start: date, end: date) -> list[date]:
    """Fridays within the range, plus the end date."""
    if end < start:
        return []
    dates = []
    current = start + timedelta(days=(4 - start.weekday()) % 7)
    while current <= end:
        dates.append(current)
        current += timedelta(days=7)
    if not dates or dates[-1] != end:
        dates.append(end)
    return dates


def monthly_dates(start: date, end: date) -> list[date]:
    """Month ends within the range, plus the end date."""
    if end < start:
        return []
    dates = []
    year, month = start.year, start.month
    while True:
        month_end = date(year, month, _calendar.monthrange(year, month)[1])
        if month_end > end:
            break
        if month_end >= start:
            dates.append(month_end)
        if month == 12:
            year, month = year + 1, 1
        else:
            month += 1
    if not dates or dates[-1] != end:
        dates.append(end)
    return dates


def generate_dates(
        calendar: str,
        start: date,
        end: date,
        price_series: PriceSeries | None = None,
        tickers: Iterable[str] | None = None,
        anchor_dates: Iterable[date] = (),
) -> list[date]:
    """
    Generate the reconstruction dates for a named calendar.

    anchor_dates only apply to the trading calendar; the others already
    cover every day, Friday or month end of the range.

    Raises:
        InvalidCalendarError: If calendar is not one of CALENDARS
    """
    if calendar == "trading":
        if price_series is None:
            price_series = PriceSeries.empty()
        return trading_dates(price_series, start, end, tickers, anchor_dates)
    elif calendar == "daily":
        return calendar_dates(start, end)
    elif calendar == "weekly":
        return weekly_dates(start, end)
    elif calendar == "monthly":
        return monthly_dates(start, end)
    raise InvalidCalendarError(calendar)
