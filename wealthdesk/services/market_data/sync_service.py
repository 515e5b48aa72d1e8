# wealthdesk/services/market_data/sync_service.py
"""
Market Data Sync Service for filling the price and FX tables of a profile.

This service handles:
- Analyzing the ledger to determine which tickers and dates are needed
- Fetching daily closes for every ticker the profile ever traded
- Fetching the foreign/home FX series when any trade is in the foreign currency
- Upserting into market_data / exchange_rates (idempotent)

Design Principles:
- Dependency Injection: provider injected via constructor
- No HTTP Knowledge: raises domain exceptions, not HTTPException
- Partial Success: continues if some tickers fail, reports warnings
- FX failure is not fatal: the converter's default rate covers missing FX

Usage:
    from wealthdesk.services.market_data import MarketDataSyncService

    service = MarketDataSyncService()
    result = service.sync_profile(db, profile_id=1)

    if result.status == "completed":
        print(f"Synced {result.prices_fetched} prices")
    else:
        print(f"Warnings: {result.warnings}")
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from wealthdesk.config import settings
from wealthdesk.models import ExchangeRate, MarketData, PortfolioTransaction, Profile
from wealthdesk.services.exceptions import MarketDataError, ProfileNotFoundError
from wealthdesk.services.market_data.base import DailyClose, MarketDataProvider
from wealthdesk.services.market_data.yahoo import YahooFinanceProvider
from wealthdesk.services.valuation.cache import PriceDataCache, profile_scope

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class ProfileAnalysis:
    """Result of analyzing a profile's ledger for sync requirements."""

    profile_id: int
    tickers: list[str] = field(default_factory=list)
    earliest_trade_date: date | None = None
    needs_fx: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.tickers


@dataclass
class TickerSyncResult:
    """Result of syncing a single ticker."""

    ticker: str
    success: bool = True
    prices_fetched: int = 0
    error: str | None = None


@dataclass
class SyncResult:
    """Complete result of a profile sync operation."""

    profile_id: int
    status: str  # "completed", "partial", "failed"
    sync_started: datetime
    sync_completed: datetime | None = None

    tickers_synced: int = 0
    tickers_failed: int = 0
    prices_fetched: int = 0
    fx_rates_fetched: int = 0

    from_date: date | None = None
    to_date: date | None = None

    ticker_results: list[TickerSyncResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# SYNC SERVICE
# =============================================================================

class MarketDataSyncService:
    """
    Fetches and stores the market data a profile's valuation needs.

    Attributes:
        _provider: Market data provider for fetching prices
        _price_cache: Cache invalidated for the profile after new data lands
    """

    def __init__(
            self,
            provider: MarketDataProvider | None = None,
            price_cache: PriceDataCache | None = None,
    ) -> None:
        self._provider = provider if provider is not None else YahooFinanceProvider()
        self._price_cache = price_cache

        logger.info(f"MarketDataSyncService initialized (provider={self._provider.name})")

    # =========================================================================
    # MAIN SYNC METHOD
    # =========================================================================

    def sync_profile(
            self,
            db: Session,
            profile_id: int,
            end_date: date | None = None,
    ) -> SyncResult:
        """
        Sync prices and FX for every instrument of a profile's ledger.

        The fetch range starts price_lookback_days before the first trade so
        a carry-forward close exists for trades made on non-trading days.

        Args:
            db: Database session
            profile_id: Profile to sync
            end_date: Last date to fetch (default: today)

        Returns:
            SyncResult with statistics and warnings

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
        """
        started = datetime.now(timezone.utc)
        end_date = end_date or date.today()

        analysis = self.analyze_profile(db, profile_id)
        result = SyncResult(profile_id=profile_id, status="completed", sync_started=started)

        if analysis.is_empty:
            result.sync_completed = datetime.now(timezone.utc)
            logger.info(f"Profile {profile_id} has no transactions, nothing to sync")
            return result

        start_date = analysis.earliest_trade_date - timedelta(days=settings.price_lookback_days)
        result.from_date = start_date
        result.to_date = end_date

        # === Instrument prices ===
        batch = self._provider.get_historical_prices_batch(
            [(ticker, start_date, end_date) for ticker in analysis.tickers]
        )

        for ticker in analysis.tickers:
            fetched = batch.results.get(ticker)
            ticker_result = TickerSyncResult(ticker=ticker)

            if fetched is None or not fetched.success:
                ticker_result.success = False
                ticker_result.error = fetched.error if fetched else "No result returned"
                result.tickers_failed += 1
                result.warnings.append(f"Failed to fetch prices for {ticker}: {ticker_result.error}")
            else:
                stored = self._store_prices(db, ticker, fetched.prices)
                ticker_result.prices_fetched = stored
                result.prices_fetched += stored
                result.tickers_synced += 1
                if not fetched.prices:
                    result.warnings.append(f"No price data for {ticker} between {start_date} and {end_date}")

            result.ticker_results.append(ticker_result)

        # === FX ===
        if analysis.needs_fx:
            foreign, home = settings.fx_pair
            try:
                fx = self._provider.get_fx_history(foreign, home, start_date, end_date)
                result.fx_rates_fetched = self._store_fx_rates(db, foreign, home, fx.prices)
            except MarketDataError as e:
                logger.warning(f"FX sync failed for {foreign}/{home}: {e}")
                result.warnings.append(
                    f"FX rates for {foreign}/{home} unavailable; default rate "
                    f"{settings.default_fx_rate} will be used"
                )

        db.commit()

        if result.tickers_failed and not result.tickers_synced:
            result.status = "failed"
        elif result.tickers_failed or result.warnings:
            result.status = "partial"

        if self._price_cache is not None:
            self._price_cache.invalidate(profile_scope(profile_id))

        result.sync_completed = datetime.now(timezone.utc)
        logger.info(
            f"Synced profile {profile_id}: {result.prices_fetched} prices for "
            f"{result.tickers_synced} tickers, {result.fx_rates_fetched} FX rates "
            f"(status={result.status})"
        )
        return result

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    def analyze_profile(self, db: Session, profile_id: int) -> ProfileAnalysis:
        """
        Determine tickers, earliest trade date and whether FX is needed.

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
        """
        if db.get(Profile, profile_id) is None:
            raise ProfileNotFoundError(profile_id)

        rows = db.execute(
            select(
                PortfolioTransaction.ticker,
                PortfolioTransaction.currency,
                func.min(PortfolioTransaction.trade_date),
            )
            .where(PortfolioTransaction.profile_id == profile_id)
            .group_by(PortfolioTransaction.ticker, PortfolioTransaction.currency)
        ).all()

        analysis = ProfileAnalysis(profile_id=profile_id)
        if not rows:
            return analysis

        foreign = settings.foreign_currency
        analysis.tickers = sorted({ticker.upper() for ticker, _, _ in rows})
        analysis.earliest_trade_date = min(first for _, _, first in rows)
        analysis.needs_fx = any(currency.upper() == foreign for _, currency, _ in rows)
        return analysis

    # =========================================================================
    # STORAGE
    # =========================================================================

    def _insert_for(self, db: Session, model):
        """Dialect-specific INSERT supporting ON CONFLICT upserts."""
        if db.get_bind().dialect.name == "sqlite":
            return sqlite_insert(model)
        return pg_insert(model)

    def _store_prices(self, db: Session, ticker: str, prices: list[DailyClose]) -> int:
        """Upsert daily closes for one ticker. Returns the number of rows written."""
        if not prices:
            return 0

        records = [
            {
                "ticker": ticker.upper(),
                "date": p.date,
                "close_price": p.close,
                "provider": self._provider.name,
            }
            for p in prices
        ]

        stmt = self._insert_for(db, MarketData).values(records)
        stmt = stmt.on_conflict_do_update(
            index_elements=["ticker", "date"],
            set_={
                "close_price": stmt.excluded.close_price,
                "provider": stmt.excluded.provider,
            },
        )
        db.execute(stmt)
        return len(records)

    def _store_fx_rates(
            self,
            db: Session,
            base_currency: str,
            quote_currency: str,
            rates: list[DailyClose],
    ) -> int:
        """Upsert daily FX rates "1 base = rate quote"."""
        if not rates:
            return 0

        records = [
            {
                "base_currency": base_currency,
                "quote_currency": quote_currency,
                "date": r.date,
                "rate": r.close,
                "provider": self._provider.name,
            }
            for r in rates
        ]

        stmt = self._insert_for(db, ExchangeRate).values(records)
        stmt = stmt.on_conflict_do_update(
            index_elements=["base_currency", "quote_currency", "date"],
            set_={
                "rate": stmt.excluded.rate,
                "provider": stmt.excluded.provider,
            },
        )
        db.execute(stmt)
        return len(records)
