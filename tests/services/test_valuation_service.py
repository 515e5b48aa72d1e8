# tests/services/test_valuation_service.py
"""
Integration tests for ValuationService against an in-memory database.

These tests exercise the full read path: repository → price cache →
engine, with data inserted through the ORM factories.
"""

from datetime import date
from decimal import Decimal

import pytest

from tests.conftest import (
    create_account,
    create_custom_holding,
    create_fx_rates,
    create_prices,
    create_transaction,
)
from wealthdesk.models import AccountType, TransactionType
from wealthdesk.services.exceptions import (
    HistoryRangeTooLargeError,
    InvalidCalendarError,
    ProfileNotFoundError,
    ValidationError,
)
from wealthdesk.services.valuation import ValuationService
from wealthdesk.services.valuation.accounts import UNASSIGNED_ACCOUNT
from wealthdesk.services.valuation.cache import PriceDataCache, profile_scope
from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.types import AnomalyKind

BUY = TransactionType.BUY
SELL = TransactionType.SELL

D1 = date(2024, 3, 4)
D2 = date(2024, 3, 5)
D3 = date(2024, 3, 6)


@pytest.fixture
def price_cache() -> PriceDataCache:
    return PriceDataCache(ttl_seconds=300)


@pytest.fixture
def service(price_cache) -> ValuationService:
    converter = CurrencyConverter("KRW", "USD", Decimal("1400"), Decimal("1"))
    return ValuationService(price_cache=price_cache, converter=converter)


# =============================================================================
# HOLDINGS
# =============================================================================

class TestGetHoldings:

    def test_values_holdings(self, service, db, profile, account):
        create_transaction(db, profile, BUY, 10, 1000, D1, account=account)
        create_transaction(db, profile, BUY, 10, 2000, D2, account=account)
        create_transaction(db, profile, SELL, 5, 2500, D3, account=account)
        create_prices(db, "005930.KS", {D3: 3000})

        valuation = service.get_holdings(db, profile.id, as_of=D3)

        assert len(valuation.holdings) == 1
        h = valuation.holdings[0]
        assert h.holding.quantity == Decimal("15")
        assert h.holding.total_invested == Decimal("22500")
        assert h.holding.average_unit_price == Decimal("1500")
        assert h.market_value == Decimal("45000")
        assert valuation.has_complete_data

    def test_foreign_holding_uses_stored_fx(self, service, db, profile):
        create_transaction(db, profile, BUY, 2, 150, D1, ticker="AAPL", currency="USD", fx_rate_at_trade=1300)
        create_prices(db, "AAPL", {D1: 160})
        create_fx_rates(db, {D1: 1350})

        valuation = service.get_holdings(db, profile.id, as_of=D2)

        h = valuation.holdings[0]
        assert h.holding.total_invested == Decimal("390000")
        assert h.fx_rate == Decimal("1350")
        assert h.market_value == Decimal("432000")
        assert valuation.anomalies == []

    def test_foreign_holding_without_fx_uses_default(self, service, db, profile):
        create_transaction(db, profile, BUY, 1, 100, D1, ticker="AAPL", currency="USD", fx_rate_at_trade=1400)
        create_prices(db, "AAPL", {D1: 100})

        valuation = service.get_holdings(db, profile.id, as_of=D1)

        assert valuation.holdings[0].market_value == Decimal("140000")
        assert [a.kind for a in valuation.anomalies] == [AnomalyKind.FX_FALLBACK]

    def test_account_selection(self, service, db, profile):
        first = create_account(db, profile, name="First")
        second = create_account(db, profile, name="Second")
        create_transaction(db, profile, BUY, 10, 1000, D1, account=first)
        create_transaction(db, profile, BUY, 10, 3000, D1, account=second)
        create_transaction(db, profile, BUY, 1, 500, D1, ticker="000660.KS")

        only_first = service.get_holdings(db, profile.id, account_ids=[str(first.id)], as_of=D1)
        both = service.get_holdings(db, profile.id, account_ids=[first.id, second.id], as_of=D1)
        unassigned = service.get_holdings(db, profile.id, account_ids=[UNASSIGNED_ACCOUNT], as_of=D1)

        assert only_first.total_invested == Decimal("10000")
        # Cost basis pools across the selected accounts
        assert both.holdings[0].holding.average_unit_price == Decimal("2000")
        assert [h.holding.ticker for h in unassigned.holdings] == ["000660.KS"]

    def test_unpriced_holding_carried_at_cost(self, service, db, profile):
        create_transaction(db, profile, BUY, 3, 1000, D1)

        valuation = service.get_holdings(db, profile.id, as_of=D1)

        assert valuation.total_market_value == Decimal("3000")
        assert not valuation.has_complete_data

    def test_empty_profile(self, service, db, profile):
        valuation = service.get_holdings(db, profile.id, as_of=D1)
        assert valuation.holdings == []

    def test_unknown_profile(self, service, db):
        with pytest.raises(ProfileNotFoundError):
            service.get_holdings(db, 999)

    def test_price_series_is_cached_per_profile(self, service, price_cache, db, profile):
        create_transaction(db, profile, BUY, 3, 1000, D1)

        service.get_holdings(db, profile.id, as_of=D3)
        service.get_holdings(db, profile.id, as_of=D2)

        assert price_cache.misses == 1
        assert price_cache.hits == 1

    def test_shares_an_empty_injected_cache(self, db, profile):
        cache = PriceDataCache(ttl_seconds=300)
        service = ValuationService(price_cache=cache)
        create_transaction(db, profile, BUY, 3, 1000, D1)

        service.get_holdings(db, profile.id, as_of=D1)
        create_prices(db, "005930.KS", {D1: 2000})
        cache.invalidate(profile_scope(profile.id))
        valuation = service.get_holdings(db, profile.id, as_of=D1)

        assert service.price_cache is cache
        assert cache.misses == 2
        assert valuation.total_market_value == Decimal("6000")


# =============================================================================
# HISTORY
# =============================================================================

class TestGetHistory:

    def test_trading_calendar(self, service, db, profile):
        create_transaction(db, profile, BUY, 10, 1000, D1)
        create_prices(db, "005930.KS", {D1: 1000, D2: 1100, D3: 1200})

        series = service.get_history(db, profile.id, start_date=D1, end_date=D3)

        assert series.dates == [D1, D2, D3]
        assert series.market_value == [Decimal("10000"), Decimal("11000"), Decimal("12000")]
        assert series.invested == [Decimal("10000")] * 3

    def test_start_defaults_to_first_trade(self, service, db, profile):
        create_transaction(db, profile, BUY, 1, 1000, D2)

        series = service.get_history(db, profile.id, end_date=D3, calendar="daily")

        assert series.dates == [D2, D3]

    def test_account_scope(self, service, db, profile):
        first = create_account(db, profile, name="First")
        second = create_account(db, profile, name="Second")
        create_transaction(db, profile, BUY, 1, 1000, D1, account=first)
        create_transaction(db, profile, BUY, 1, 5000, D2, account=second)

        series = service.get_history(
            db, profile.id, end_date=D3, account_ids=[str(second.id)], calendar="daily"
        )

        assert series.dates == [D2, D3]
        assert series.invested == [Decimal("5000"), Decimal("5000")]

    def test_empty_scope(self, service, db, profile):
        series = service.get_history(db, profile.id, end_date=D3)
        assert len(series) == 0

    def test_end_before_first_trade_without_start(self, service, db, profile):
        create_transaction(db, profile, BUY, 1, 1000, D3)

        series = service.get_history(db, profile.id, end_date=D1)

        assert len(series) == 0

    def test_unpriced_ledger_on_trading_calendar(self, service, db, profile):
        create_transaction(db, profile, BUY, 10, 500, D2, ticker="PRIVATE1")

        series = service.get_history(db, profile.id, start_date=D1, end_date=D3)
        holdings = service.get_holdings(db, profile.id, as_of=D3)

        assert series.dates == [D2, D3]
        assert series.market_value == [Decimal("5000"), Decimal("5000")]
        assert series.market_value[-1] == holdings.total_market_value

    def test_invalid_calendar(self, service, db, profile):
        with pytest.raises(InvalidCalendarError):
            service.get_history(db, profile.id, calendar="hourly")

    def test_reversed_range(self, service, db, profile):
        with pytest.raises(ValidationError):
            service.get_history(db, profile.id, start_date=D3, end_date=D1)

    def test_range_too_large(self, service, db, profile):
        with pytest.raises(HistoryRangeTooLargeError):
            service.get_history(db, profile.id, start_date=date(2000, 1, 1), end_date=D3)


# =============================================================================
# ACCOUNT TOTALS
# =============================================================================

class TestGetAccountTotals:

    def test_per_account_totals(self, service, db, profile):
        brokerage = create_account(db, profile, name="Brokerage", additional_amount=Decimal("700"))
        create_account(db, profile, name="Empty ISA", account_type=AccountType.ISA)
        create_account(db, profile, name="Bank", account_type=AccountType.SAVINGS)
        create_transaction(db, profile, BUY, 10, 1000, D1, account=brokerage)
        create_custom_holding(db, profile, None, principal=Decimal("100"), current_value=Decimal("90"))
        create_prices(db, "005930.KS", {D1: 1200})

        totals = service.get_account_totals(db, profile.id, as_of=D1)

        assert set(totals) == {str(brokerage.id), str(brokerage.id + 1), UNASSIGNED_ACCOUNT}
        assert totals[str(brokerage.id)].invested_amount == Decimal("10000")
        assert totals[str(brokerage.id)].market_value == Decimal("12700")
        assert totals[str(brokerage.id + 1)].holdings_count == 0
        assert totals[UNASSIGNED_ACCOUNT].market_value == Decimal("90")

    def test_unknown_profile(self, service, db):
        with pytest.raises(ProfileNotFoundError):
            service.get_account_totals(db, 999)
