# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- FastAPI TestClient with the database dependency overridden
- Mock market data provider
- Sample data factories (ORM rows and engine value objects)
"""

import os

# Settings are validated at import time; test mode allows in-memory SQLite
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wealthdesk.models import (
    Account,
    AccountType,
    Base,
    CustomHolding,
    ExchangeRate,
    InstrumentClass,
    MarketData,
    PortfolioTransaction,
    Profile,
    TransactionType,
)
from wealthdesk.services.exceptions import TickerNotFoundError
from wealthdesk.services.market_data.base import (
    DailyClose,
    HistoricalPricesResult,
    MarketDataProvider,
)
from wealthdesk.services.valuation.types import (
    FxObservation,
    PriceObservation,
    Transaction,
)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client(db: Session):
    """
    TestClient with the database dependency overridden.

    Service singletons are reset around each test so the shared price cache
    never leaks between tests.
    """
    from fastapi.testclient import TestClient

    from wealthdesk.database import get_db
    from wealthdesk.dependencies import clear_service_caches
    from wealthdesk.main import app

    def override_get_db():
        yield db

    clear_service_caches()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    clear_service_caches()


# =============================================================================
# MOCK MARKET DATA PROVIDER
# =============================================================================

class MockMarketDataProvider(MarketDataProvider):
    """
    Mock implementation of MarketDataProvider for testing.

    Returns configured closes per ticker, generates weekday closes for
    unconfigured tickers, and can be told to fail for given tickers or FX.
    """

    def __init__(self):
        self._prices: dict[str, list[DailyClose]] = {}
        self._fx: list[DailyClose] | None = None
        self._fail_tickers: set[str] = set()
        self._fx_error: Exception | None = None
        self.price_calls: list[tuple[str, date, date]] = []
        self.fx_calls: list[tuple[str, str, date, date]] = []

    @property
    def name(self) -> str:
        return "mock"

    def set_prices(self, ticker: str, prices: list[DailyClose]) -> None:
        self._prices[ticker.upper()] = prices

    def set_fx(self, rates: list[DailyClose]) -> None:
        self._fx = rates

    def set_fail_ticker(self, ticker: str) -> None:
        self._fail_tickers.add(ticker.upper())

    def set_fx_error(self, error: Exception) -> None:
        self._fx_error = error

    def get_historical_prices(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        ticker = ticker.upper()
        self.price_calls.append((ticker, start_date, end_date))

        if ticker in self._fail_tickers:
            raise TickerNotFoundError(ticker=ticker, provider=self.name)

        prices = self._prices.get(ticker)
        if prices is None:
            prices = _weekday_closes(start_date, end_date, Decimal("100"))

        return HistoricalPricesResult(
            ticker=ticker,
            prices=[p for p in prices if start_date <= p.date <= end_date],
            from_date=start_date,
            to_date=end_date,
        )

    def get_fx_history(
            self,
            base_currency: str,
            quote_currency: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        self.fx_calls.append((base_currency, quote_currency, start_date, end_date))

        if self._fx_error is not None:
            raise self._fx_error

        rates = self._fx
        if rates is None:
            rates = _weekday_closes(start_date, end_date, Decimal("1300"))

        return HistoricalPricesResult(
            ticker=f"{base_currency}{quote_currency}=X",
            prices=[r for r in rates if start_date <= r.date <= end_date],
            from_date=start_date,
            to_date=end_date,
        )


def _weekday_closes(start: date, end: date, price: Decimal) -> list[DailyClose]:
    closes = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            closes.append(DailyClose(date=current, close=price))
        current += timedelta(days=1)
    return closes


@pytest.fixture
def mock_provider() -> MockMarketDataProvider:
    """Create a fresh mock provider for each test."""
    return MockMarketDataProvider()


# =============================================================================
# ENGINE VALUE OBJECT FACTORIES
# =============================================================================

def make_txn(
        txn_id: int,
        transaction_type: TransactionType | str,
        quantity: str | int,
        unit_price: str | int,
        trade_date: date,
        ticker: str = "005930.KS",
        account_id: int | str | None = 1,
        currency: str = "KRW",
        sequence: int | None = None,
        fee: str | int = 0,
        instrument_class: InstrumentClass = InstrumentClass.DOMESTIC_STOCK,
) -> Transaction:
    """Factory for engine Transactions (sequence defaults to the id)."""
    return Transaction(
        id=txn_id,
        sequence=txn_id if sequence is None else sequence,
        account_id=account_id,
        ticker=ticker,
        name=ticker,
        instrument_class=instrument_class,
        transaction_type=TransactionType(transaction_type),
        quantity=Decimal(str(quantity)),
        unit_price=Decimal(str(unit_price)),
        currency=currency,
        trade_date=trade_date,
        fee=Decimal(str(fee)),
    )


def price_obs(ticker: str, on_date: date, close: str | int) -> PriceObservation:
    return PriceObservation(ticker=ticker, date=on_date, close_price=Decimal(str(close)))


def fx_obs(on_date: date, rate: str | int) -> FxObservation:
    return FxObservation(date=on_date, rate=Decimal(str(rate)))


# =============================================================================
# ORM FACTORIES
# =============================================================================

def create_profile(db: Session, name: str = "Test Client") -> Profile:
    profile = Profile(name=name)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def create_account(
        db: Session,
        profile: Profile,
        name: str = "Brokerage",
        account_type: AccountType = AccountType.GENERAL,
        broker_name: str | None = "Test Securities",
        additional_amount: Decimal = Decimal("0"),
) -> Account:
    account = Account(
        profile_id=profile.id,
        name=name,
        account_type=account_type,
        broker_name=broker_name,
        additional_amount=additional_amount,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def create_transaction(
        db: Session,
        profile: Profile,
        transaction_type: TransactionType,
        quantity: str | int,
        trade_price: str | int,
        trade_date: date,
        ticker: str = "005930.KS",
        account: Account | None = None,
        currency: str = "KRW",
        fx_rate_at_trade: str | int = 1,
        fee: str | int = 0,
) -> PortfolioTransaction:
    """
    Insert a ledger row directly, bypassing TransactionService checks.

    unit_price = trade_price × fx_rate_at_trade.
    """
    price = Decimal(str(trade_price))
    rate = Decimal(str(fx_rate_at_trade))
    txn = PortfolioTransaction(
        profile_id=profile.id,
        account_id=account.id if account else None,
        transaction_type=transaction_type,
        instrument_class=(
            InstrumentClass.DOMESTIC_STOCK if currency == "KRW" else InstrumentClass.FOREIGN_STOCK
        ),
        ticker=ticker,
        name=ticker,
        quantity=Decimal(str(quantity)),
        trade_price=price,
        currency=currency,
        fx_rate_at_trade=rate,
        unit_price=price * rate,
        fee=Decimal(str(fee)),
        trade_date=trade_date,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    return txn


def create_custom_holding(
        db: Session,
        profile: Profile,
        account: Account | None,
        name: str = "Private Fund",
        principal: Decimal = Decimal("1000000"),
        current_value: Decimal = Decimal("1100000"),
) -> CustomHolding:
    holding = CustomHolding(
        profile_id=profile.id,
        account_id=account.id if account else None,
        name=name,
        principal=principal,
        current_value=current_value,
    )
    db.add(holding)
    db.commit()
    db.refresh(holding)
    return holding


def create_prices(db: Session, ticker: str, closes: dict[date, str | int]) -> None:
    for on_date, close in closes.items():
        db.add(MarketData(ticker=ticker, date=on_date, close_price=Decimal(str(close))))
    db.commit()


def create_fx_rates(db: Session, rates: dict[date, str | int], base: str = "USD", quote: str = "KRW") -> None:
    for on_date, rate in rates.items():
        db.add(ExchangeRate(base_currency=base, quote_currency=quote, date=on_date, rate=Decimal(str(rate))))
    db.commit()


# =============================================================================
# FIXTURE EXPORTS
# =============================================================================

@pytest.fixture
def profile(db: Session) -> Profile:
    return create_profile(db)


@pytest.fixture
def account(db: Session, profile: Profile) -> Account:
    return create_account(db, profile)
