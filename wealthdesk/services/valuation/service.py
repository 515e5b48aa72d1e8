# wealthdesk/services/valuation/service.py
"""
Valuation Service - Main orchestrator for portfolio valuation.

This is the single entry point for all valuation operations:
- get_holdings(): Open positions of a ledger scope valued on a date
- get_history(): Invested / market value time series for charts
- get_account_totals(): Per-account invested / market value

Design Principles:
- Dependency Injection: repository, price cache and converter via constructor
- No HTTP Knowledge: raises domain exceptions, not HTTPException
- Composable: delegates to the engine (ledger, calculators, reconstructor)
- The engine is pure; this service does every database read up front

Usage:
    from wealthdesk.services.valuation import ValuationService

    service = ValuationService()

    holdings = service.get_holdings(db, profile_id=1, account_ids={3})

    history = service.get_history(
        db, profile_id=1,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        calendar="daily",
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta

from sqlalchemy.orm import Session

from wealthdesk.config import settings
from wealthdesk.services.exceptions import (
    HistoryRangeTooLargeError,
    InvalidCalendarError,
    ValidationError,
)
from wealthdesk.services.valuation.repository import LedgerRepository
from wealthdesk.services.valuation.accounts import AccountAggregator
from wealthdesk.services.valuation.cache import PriceDataCache, profile_scope
from wealthdesk.services.valuation.calculators import PortfolioValuator, ValueCalculator
from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.history_calculator import (
    CALENDARS,
    ValuationReconstructor,
    generate_dates,
)
from wealthdesk.services.valuation.ledger import CostBasisLedger
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import (
    AnomalyReporter,
    CollectingAnomalyReporter,
    LoggingAnomalyReporter,
)
from wealthdesk.services.valuation.types import (
    AccountTotals,
    PortfolioValuation,
    Transaction,
    ValuationSeries,
)

logger = logging.getLogger(__name__)


class ValuationService:
    """
    Main service for portfolio valuation operations.

    Attributes:
        _repository: Ledger and market data reads
        _price_cache: Injected PriceDataCache shared across requests
        _converter: Foreign → home conversion
        _reporter: Where anomalies are forwarded (logged by default)
    """

    def __init__(
            self,
            repository: LedgerRepository | None = None,
            price_cache: PriceDataCache | None = None,
            converter: CurrencyConverter | None = None,
            reporter: AnomalyReporter | None = None,
    ) -> None:
        self._repository = repository if repository is not None else LedgerRepository()
        self._price_cache = price_cache if price_cache is not None else PriceDataCache()
        self._converter = converter if converter is not None else CurrencyConverter()
        self._reporter = reporter if reporter is not None else LoggingAnomalyReporter()

        self._ledger = CostBasisLedger(self._reporter)
        self._value_calc = ValueCalculator(self._converter, self._reporter)
        self._valuator = PortfolioValuator(self._ledger, self._value_calc)
        self._reconstructor = ValuationReconstructor(self._ledger, self._value_calc)
        self._aggregator = AccountAggregator(self._ledger, self._value_calc)

    @property
    def price_cache(self) -> PriceDataCache:
        return self._price_cache

    @property
    def converter(self) -> CurrencyConverter:
        return self._converter

    # =========================================================================
    # HOLDINGS
    # =========================================================================

    def get_holdings(
            self,
            db: Session,
            profile_id: int,
            account_ids: Iterable[int | str] | str | None = None,
            as_of: date | None = None,
    ) -> PortfolioValuation:
        """
        Value the open holdings of a ledger scope.

        Args:
            db: Database session
            profile_id: Profile owning the ledger
            account_ids: Account selection (None / "all" → every account)
            as_of: Valuation date (default: today)

        Returns:
            PortfolioValuation with anomalies observed during the replay

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
        """
        as_of = as_of or date.today()
        ledger = self._load_ledger(db, profile_id)
        scoped = self._aggregator.filter_by_accounts(ledger, account_ids)

        price_series = self._load_prices(db, profile_id, ledger, as_of)

        collector = CollectingAnomalyReporter(forward_to=self._reporter)
        valuation = self._valuator.valuate(scoped, price_series, as_of, collector)
        valuation.anomalies = collector.anomalies

        logger.info(
            f"Valued {len(valuation.holdings)} holdings for profile {profile_id} on {as_of}",
            extra={"profile_id": profile_id, "anomalies": len(collector)},
        )
        return valuation

    # =========================================================================
    # HISTORY
    # =========================================================================

    def get_history(
            self,
            db: Session,
            profile_id: int,
            start_date: date | None = None,
            end_date: date | None = None,
            account_ids: Iterable[int | str] | str | None = None,
            calendar: str = "trading",
    ) -> ValuationSeries:
        """
        Reconstruct invested amount and market value over a date range.

        Args:
            db: Database session
            profile_id: Profile owning the ledger
            start_date: First date (default: first trade of the scope)
            end_date: Last date (default: today)
            account_ids: Account selection (None / "all" → every account)
            calendar: "trading", "daily", "weekly" or "monthly"

        Returns:
            ValuationSeries aligned with the calendar's dates

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
            InvalidCalendarError: If the calendar is unknown
            ValidationError: If start_date is after end_date
            HistoryRangeTooLargeError: If the range exceeds max_history_days
        """
        if calendar not in CALENDARS:
            raise InvalidCalendarError(calendar)

        end_date = end_date or date.today()
        ledger = self._load_ledger(db, profile_id)
        scoped = self._aggregator.filter_by_accounts(ledger, account_ids)

        if start_date is None:
            if not scoped:
                return ValuationSeries()
            first_trade = min(t.trade_date for t in scoped)
            if end_date < first_trade:
                return ValuationSeries()
            # Default to the first trade, capped to the maximum span
            start_date = max(first_trade, end_date - timedelta(days=settings.max_history_days))

        if start_date > end_date:
            raise ValidationError(
                f"from_date ({start_date}) must be on or before to_date ({end_date})",
                field="from_date",
            )

        days = (end_date - start_date).days
        if days > settings.max_history_days:
            raise HistoryRangeTooLargeError(days, settings.max_history_days)

        price_series = self._load_prices(db, profile_id, ledger, end_date)
        tickers = {t.ticker for t in scoped}
        dates = generate_dates(
            calendar, start_date, end_date, price_series, tickers,
            anchor_dates=[t.trade_date for t in scoped] + [end_date],
        )

        series = self._reconstructor.reconstruct(scoped, price_series, dates, self._reporter)

        logger.info(
            f"Reconstructed {len(series)} {calendar} points for profile {profile_id} "
            f"({start_date} → {end_date})",
            extra={"profile_id": profile_id, "anomalies": len(series.anomalies)},
        )
        return series

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def get_account_totals(
            self,
            db: Session,
            profile_id: int,
            as_of: date | None = None,
    ) -> dict[str, AccountTotals]:
        """
        Invested amount and market value per account.

        Cost basis is replayed independently per account. Securities accounts
        are listed even when empty; additional amounts and custom holdings are
        included.

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
        """
        as_of = as_of or date.today()
        ledger = self._load_ledger(db, profile_id)
        accounts = self._repository.list_accounts(db, profile_id)
        custom_holdings = self._repository.list_custom_holdings(db, profile_id)

        price_series = self._load_prices(db, profile_id, ledger, as_of)

        return self._aggregator.per_account_totals(
            ledger,
            accounts,
            price_series,
            as_of=as_of,
            custom_holdings=custom_holdings,
            reporter=self._reporter,
        )

    # =========================================================================
    # DATA LOADING
    # =========================================================================

    def _load_ledger(self, db: Session, profile_id: int) -> list[Transaction]:
        self._repository.get_profile(db, profile_id)
        return self._repository.list_transactions(db, profile_id)

    def _load_prices(
            self,
            db: Session,
            profile_id: int,
            ledger: list[Transaction],
            end: date,
    ) -> PriceSeries:
        """
        Prices and FX for every instrument of the profile's full ledger.

        The range starts price_lookback_days before the first trade so the
        carry-forward lookup has a close for instruments bought on a
        non-trading day. Loading the full ledger's instruments (not just the
        selected accounts') keeps one cache entry per profile.
        """
        if not ledger:
            return PriceSeries.empty()

        start = min(t.trade_date for t in ledger) - timedelta(days=settings.price_lookback_days)
        end = max(end, start)
        instruments = {t.ticker for t in ledger}

        def loader(tickers: frozenset[str], load_start: date, load_end: date) -> PriceSeries:
            foreign, home = self._converter.foreign_currency, self._converter.home_currency
            return PriceSeries.from_observations(
                self._repository.list_price_observations(db, tickers, load_start, load_end),
                self._repository.list_fx_observations(db, foreign, home, load_start, load_end),
            )

        return self._price_cache.get_or_load(
            profile_scope(profile_id), instruments, start, end, loader
        )
