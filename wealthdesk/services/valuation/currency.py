# wealthdesk/services/valuation/currency.py
"""
Foreign → home currency conversion.

The ledger holds at most two currencies: the home currency every value is
reported in (KRW by default) and one foreign currency (USD by default).

FX convention:
    The stored series is "1 foreign unit = rate home units" (USD/KRW = 1350
    means 1 USD = 1350 KRW). To convert foreign → home, MULTIPLY by rate.

Missing FX data is never an error: the carry-forward rate on or before the
date is used, and when no observation exists at all the configured default
rate is used and an FX_FALLBACK anomaly is reported. A moving chart cannot
tolerate gaps, so conversion never raises for missing data.

Rounding:
    Conversions return unrounded Decimals. Rounding to the home currency's
    smallest unit happens once, at persistence or response time, through
    round_home(), so rounding error does not compound across a replay.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from wealthdesk.config import settings
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import AnomalyReporter, LoggingAnomalyReporter
from wealthdesk.services.valuation.types import Anomaly, AnomalyKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FxResolution:
    """
    Result of resolving the FX rate effective on a date.

    Attributes:
        requested_date: Date the rate was asked for
        rate: Home units per foreign unit
        rate_date: Date of the observation used (None for the default rate)
        is_fallback: True if the configured default rate was used
    """

    requested_date: date
    rate: Decimal
    rate_date: date | None
    is_fallback: bool = False

    @property
    def is_exact_match(self) -> bool:
        return self.rate_date == self.requested_date


class CurrencyConverter:
    """
    Converts foreign-currency unit prices to the home currency.

    Stateless apart from its configuration; safe to share between requests.
    """

    def __init__(
            self,
            home_currency: str | None = None,
            foreign_currency: str | None = None,
            default_rate: Decimal | None = None,
            quantum: Decimal | None = None,
            reporter: AnomalyReporter | None = None,
    ) -> None:
        self.home_currency = (home_currency or settings.home_currency).upper()
        self.foreign_currency = (foreign_currency or settings.foreign_currency).upper()
        self.default_rate = default_rate if default_rate is not None else settings.default_fx_rate
        self.quantum = quantum if quantum is not None else settings.home_currency_quantum
        self._reporter = reporter if reporter is not None else LoggingAnomalyReporter()

        if self.default_rate <= 0:
            raise ValueError(f"Default FX rate must be positive, got {self.default_rate}")

    def _reporter_for(self, reporter: AnomalyReporter | None) -> AnomalyReporter:
        return reporter if reporter is not None else self._reporter

    # =========================================================================
    # CURRENCY CLASSIFICATION
    # =========================================================================

    def is_home(self, currency: str) -> bool:
        return currency.upper() == self.home_currency

    def is_foreign(self, currency: str) -> bool:
        return currency.upper() == self.foreign_currency

    def recognizes(self, currency: str) -> bool:
        return self.is_home(currency) or self.is_foreign(currency)

    @property
    def supported_currencies(self) -> tuple[str, str]:
        return self.home_currency, self.foreign_currency

    # =========================================================================
    # RATE RESOLUTION
    # =========================================================================

    def resolve_rate(
            self,
            on_date: date,
            price_series: PriceSeries,
            reporter: AnomalyReporter | None = None,
    ) -> FxResolution:
        """
        Resolve the FX rate effective on a date.

        Args:
            on_date: Date the rate should apply to
            price_series: Source of FX observations
            reporter: Overrides the converter's reporter for this call

        Returns:
            FxResolution with the carry-forward rate, or the default rate
            (is_fallback=True) when no observation exists on or before on_date
        """
        resolution = self.lookup_rate(on_date, price_series)
        if not resolution.is_fallback:
            return resolution

        self._reporter_for(reporter).report(Anomaly(
            kind=AnomalyKind.FX_FALLBACK,
            message=(
                f"No {self.foreign_currency}/{self.home_currency} rate on or before "
                f"{on_date}; using default rate {self.default_rate}"
            ),
            trade_date=on_date,
        ))
        return resolution

    def lookup_rate(self, on_date: date, price_series: PriceSeries) -> FxResolution:
        """Same resolution as resolve_rate, without reporting a fallback."""
        found = price_series.fx_observation_on_or_before(on_date)
        if found is not None:
            rate_date, rate = found
            return FxResolution(requested_date=on_date, rate=rate, rate_date=rate_date)
        return FxResolution(
            requested_date=on_date,
            rate=self.default_rate,
            rate_date=None,
            is_fallback=True,
        )

    # =========================================================================
    # CONVERSION
    # =========================================================================

    def to_home(
            self,
            foreign_unit_price: Decimal,
            on_date: date,
            price_series: PriceSeries,
            reporter: AnomalyReporter | None = None,
    ) -> Decimal:
        """
        Convert a foreign-currency unit price to home currency (unrounded).

        Example:
            - USD/KRW on or before 2024-03-08: 1330
            - foreign_unit_price: 170.50 USD
            - result: 170.50 × 1330 = 226765.00 KRW
        """
        resolution = self.resolve_rate(on_date, price_series, reporter)
        return self.convert_with_rate(foreign_unit_price, resolution.rate)

    def convert_with_rate(self, foreign_amount: Decimal, rate: Decimal) -> Decimal:
        """Convert with an explicit rate (e.g. the broker rate at trade time)."""
        if rate <= 0:
            raise ValueError(f"FX rate must be positive, got {rate}")
        return foreign_amount * rate

    def round_home(self, amount: Decimal) -> Decimal:
        """Round to the home currency's smallest accounted unit."""
        return amount.quantize(self.quantum, rounding=ROUND_HALF_UP)
