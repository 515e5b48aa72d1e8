# wealthdesk/services/valuation/calculators.py
"""
Point-in-time valuation of holdings.

- ValueCalculator: values one HoldingState on a date
- PortfolioValuator: values every open holding of a ledger scope

Valuation rule:
    market_value = quantity × (carry-forward close on or before the date)
    × FX rate (foreign-currency instruments only)

    No price on or before the date → the holding is carried at cost
    (market_value = total_invested, price_source = "cost_carry"), so an
    unpriced instrument never drags the portfolio value to zero.

All amounts are unrounded Decimals in the home currency.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.ledger import CostBasisLedger
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import AnomalyReporter, LoggingAnomalyReporter
from wealthdesk.services.valuation.types import (
    Anomaly,
    AnomalyKind,
    HoldingState,
    HoldingValuation,
    PortfolioValuation,
    Transaction,
)

logger = logging.getLogger(__name__)

PRICE_SOURCE_MARKET = "market"
PRICE_SOURCE_COST_CARRY = "cost_carry"


# =============================================================================
# VALUE CALCULATOR
# =============================================================================

class ValueCalculator:
    """
    Values a single holding on a date.

    Stateless apart from the injected converter and reporter.
    """

    def __init__(
            self,
            converter: CurrencyConverter | None = None,
            reporter: AnomalyReporter | None = None,
    ) -> None:
        self._converter = converter if converter is not None else CurrencyConverter()
        self._reporter = reporter if reporter is not None else LoggingAnomalyReporter()

    @property
    def converter(self) -> CurrencyConverter:
        return self._converter

    def value(
            self,
            holding: HoldingState,
            on_date: date,
            price_series: PriceSeries,
            reporter: AnomalyReporter | None = None,
    ) -> HoldingValuation:
        """
        Value a holding on a date.

        Args:
            holding: Cost-basis state to value
            on_date: Valuation date
            price_series: Carry-forward prices and FX
            reporter: Overrides the calculator's reporter for this call

        Returns:
            HoldingValuation in home currency
        """
        reporter = reporter if reporter is not None else self._reporter

        found = price_series.price_observation_on_or_before(holding.ticker, on_date)
        if found is None:
            return HoldingValuation(
                holding=holding,
                valuation_date=on_date,
                price=None,
                price_date=None,
                fx_rate=None,
                market_value=holding.total_invested,
                price_source=PRICE_SOURCE_COST_CARRY,
            )

        price_date, price = found
        value_local = holding.quantity * price

        if self._converter.is_home(holding.currency):
            return HoldingValuation(
                holding=holding,
                valuation_date=on_date,
                price=price,
                price_date=price_date,
                fx_rate=None,
                market_value=value_local,
            )

        if not self._converter.is_foreign(holding.currency):
            # Unrecognized currency: valued as if already in home currency
            reporter.report(Anomaly(
                kind=AnomalyKind.UNKNOWN_CURRENCY,
                message=(
                    f"{holding.ticker} trades in unsupported currency {holding.currency}; "
                    f"valued without conversion"
                ),
                ticker=holding.ticker,
            ))
            return HoldingValuation(
                holding=holding,
                valuation_date=on_date,
                price=price,
                price_date=price_date,
                fx_rate=None,
                market_value=value_local,
            )

        home_price = self._converter.to_home(price, on_date, price_series, reporter)
        return HoldingValuation(
            holding=holding,
            valuation_date=on_date,
            price=price,
            price_date=price_date,
            fx_rate=self._converter.lookup_rate(on_date, price_series).rate,
            market_value=holding.quantity * home_price,
        )


# =============================================================================
# PORTFOLIO VALUATOR
# =============================================================================

class PortfolioValuator:
    """
    Replays a ledger scope and values every open holding on one date.

    Only transactions with trade_date ≤ valuation date are replayed.
    """

    def __init__(
            self,
            ledger: CostBasisLedger | None = None,
            value_calculator: ValueCalculator | None = None,
    ) -> None:
        self._ledger = ledger if ledger is not None else CostBasisLedger()
        self._value_calc = value_calculator if value_calculator is not None else ValueCalculator()

    def valuate(
            self,
            transactions: Iterable[Transaction],
            price_series: PriceSeries,
            on_date: date,
            reporter: AnomalyReporter | None = None,
    ) -> PortfolioValuation:
        eligible = [t for t in transactions if t.trade_date <= on_date]
        holdings = self._ledger.compute_holdings(eligible, reporter)

        valuations = [
            self._value_calc.value(holding, on_date, price_series, reporter)
            for _, holding in sorted(holdings.items())
        ]

        unpriced = [v.holding.ticker for v in valuations if not v.is_priced]
        if unpriced:
            logger.debug(
                f"Valued {len(unpriced)} holdings at cost on {on_date}: {', '.join(unpriced)}"
            )

        return PortfolioValuation(
            valuation_date=on_date,
            home_currency=self._value_calc.converter.home_currency,
            holdings=valuations,
        )
