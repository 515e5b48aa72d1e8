# tests/services/test_transaction_service.py
"""
Tests for TransactionService, the only writer of the ledger.

Test Coverage:
- Home-currency unit price of foreign trades (given, stored or default rate)
- Oversell rejection on create, update and delete
- Account and currency validation
- Price cache invalidation after writes
"""

from datetime import date
from decimal import Decimal

import pytest

from tests.conftest import (
    create_account,
    create_fx_rates,
    create_profile,
    create_transaction,
)
from wealthdesk.models import PortfolioTransaction, TransactionType
from wealthdesk.schemas.transactions import TransactionCreate, TransactionUpdate
from wealthdesk.services.exceptions import (
    AccountNotFoundError,
    OversellError,
    ProfileNotFoundError,
    TransactionNotFoundError,
    UnsupportedCurrencyError,
)
from wealthdesk.services.transaction_service import TransactionService
from wealthdesk.services.valuation.cache import PriceDataCache, profile_scope
from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.price_series import PriceSeries

BUY = TransactionType.BUY
SELL = TransactionType.SELL


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def price_cache() -> PriceDataCache:
    return PriceDataCache(ttl_seconds=300)


@pytest.fixture
def service(price_cache) -> TransactionService:
    converter = CurrencyConverter("KRW", "USD", Decimal("1400"), Decimal("1"))
    return TransactionService(converter=converter, price_cache=price_cache)


def _data(
        transaction_type=BUY,
        quantity="10",
        trade_price="1000",
        trade_date=date(2024, 3, 4),
        ticker="005930.KS",
        account_id=None,
        currency="KRW",
        **extra,
) -> dict:
    return {
        "transaction_type": transaction_type,
        "ticker": ticker,
        "name": "Instrument",
        "quantity": quantity,
        "trade_price": trade_price,
        "trade_date": trade_date,
        "account_id": account_id,
        "currency": currency,
        **extra,
    }


def _create(service, db, profile, **kwargs) -> PortfolioTransaction:
    return service.create(db, profile.id, TransactionCreate(**_data(**kwargs)))


# =============================================================================
# CREATE
# =============================================================================

class TestCreate:

    def test_home_currency_trade(self, service, db, profile, account):
        row = _create(service, db, profile, account_id=account.id)

        assert row.id is not None
        assert row.unit_price == Decimal("1000")
        assert row.fx_rate_at_trade == Decimal("1")
        assert row.account_id == account.id

    def test_foreign_trade_with_broker_rate(self, service, db, profile):
        row = _create(
            service, db, profile,
            ticker="AAPL", currency="USD", trade_price="100.25", fx_rate_at_trade="1330.5",
        )

        assert row.fx_rate_at_trade == Decimal("1330.5")
        # 100.25 × 1330.5 = 133382.625, rounded to the won
        assert row.unit_price == Decimal("133383")

    def test_foreign_trade_uses_stored_rate(self, service, db, profile):
        create_fx_rates(db, {date(2024, 3, 1): 1320})

        row = _create(service, db, profile, ticker="AAPL", currency="USD", trade_price="100")

        assert row.fx_rate_at_trade == Decimal("1320")
        assert row.unit_price == Decimal("132000")

    def test_foreign_trade_without_rate_uses_default(self, service, db, profile):
        row = _create(service, db, profile, ticker="AAPL", currency="USD", trade_price="100")

        assert row.fx_rate_at_trade == Decimal("1400")
        assert row.unit_price == Decimal("140000")

    def test_unsupported_currency(self, service, db, profile):
        with pytest.raises(UnsupportedCurrencyError):
            _create(service, db, profile, ticker="SAP.DE", currency="EUR")

    def test_unknown_profile(self, service, db):
        with pytest.raises(ProfileNotFoundError):
            service.create(db, 999, TransactionCreate(**_data()))

    def test_account_of_another_profile(self, service, db, profile):
        other = create_profile(db, "Other")
        foreign_account = create_account(db, other)

        with pytest.raises(AccountNotFoundError):
            _create(service, db, profile, account_id=foreign_account.id)

    def test_sell_within_position(self, service, db, profile):
        _create(service, db, profile, quantity="10")
        row = _create(service, db, profile, transaction_type=SELL, quantity="10", trade_date=date(2024, 3, 5))

        assert row.transaction_type == SELL

    def test_oversell_rejected(self, service, db, profile):
        _create(service, db, profile, quantity="10")

        with pytest.raises(OversellError) as exc_info:
            _create(service, db, profile, transaction_type=SELL, quantity="11", trade_date=date(2024, 3, 5))

        assert exc_info.value.ticker == "005930.KS"
        assert exc_info.value.requested == Decimal("11")
        assert exc_info.value.available == Decimal("10")
        assert db.query(PortfolioTransaction).count() == 1

    def test_sell_before_buy_date_rejected(self, service, db, profile):
        _create(service, db, profile, quantity="10", trade_date=date(2024, 3, 5))

        with pytest.raises(OversellError) as exc_info:
            _create(service, db, profile, transaction_type=SELL, quantity="1", trade_date=date(2024, 3, 4))

        assert exc_info.value.available == Decimal("0")

    def test_position_is_per_account(self, service, db, profile):
        first = create_account(db, profile, name="First")
        second = create_account(db, profile, name="Second")
        _create(service, db, profile, quantity="10", account_id=first.id)

        with pytest.raises(OversellError):
            _create(
                service, db, profile,
                transaction_type=SELL, quantity="1", account_id=second.id, trade_date=date(2024, 3, 5),
            )

    def test_invalidates_price_cache(self, service, price_cache, db, profile):
        price_cache.get_or_load(
            profile_scope(profile.id), {"AAA"}, date(2024, 1, 1), date(2024, 3, 1),
            lambda *_: PriceSeries.empty(),
        )
        assert len(price_cache) == 1

        _create(service, db, profile)

        assert len(price_cache) == 0

    def test_oversell_rejected_with_fresh_service(self, db, profile):
        service = TransactionService(price_cache=PriceDataCache())
        _create(service, db, profile, quantity="10")

        with pytest.raises(OversellError):
            _create(service, db, profile, transaction_type=SELL, quantity="15", trade_date=date(2024, 3, 5))

        assert db.query(PortfolioTransaction).count() == 1


# =============================================================================
# UPDATE / DELETE
# =============================================================================

class TestUpdateDelete:

    def test_update_replaces_fields(self, service, db, profile):
        row = _create(service, db, profile)

        updated = service.update(
            db, profile.id, row.id, TransactionUpdate(**_data(quantity="12", trade_price="900"))
        )

        assert updated.id == row.id
        assert updated.quantity == Decimal("12")
        assert updated.unit_price == Decimal("900")

    def test_update_that_breaks_later_sell_rejected(self, service, db, profile):
        buy = _create(service, db, profile, quantity="10")
        _create(service, db, profile, transaction_type=SELL, quantity="8", trade_date=date(2024, 3, 5))

        with pytest.raises(OversellError):
            service.update(db, profile.id, buy.id, TransactionUpdate(**_data(quantity="5")))

        db.refresh(buy)
        assert buy.quantity == Decimal("10")

    def test_delete(self, service, db, profile):
        row = _create(service, db, profile)

        service.delete(db, profile.id, row.id)

        assert db.get(PortfolioTransaction, row.id) is None

    def test_delete_buy_needed_by_later_sell_rejected(self, service, db, profile):
        buy = _create(service, db, profile, quantity="10")
        _create(service, db, profile, transaction_type=SELL, quantity="4", trade_date=date(2024, 3, 5))

        with pytest.raises(OversellError):
            service.delete(db, profile.id, buy.id)

    def test_delete_sell_is_always_allowed(self, service, db, profile):
        _create(service, db, profile, quantity="10")
        sell = _create(service, db, profile, transaction_type=SELL, quantity="4", trade_date=date(2024, 3, 5))

        service.delete(db, profile.id, sell.id)

        assert db.query(PortfolioTransaction).count() == 1

    def test_transaction_of_another_profile(self, service, db, profile):
        other = create_profile(db, "Other")
        row = create_transaction(db, other, BUY, 1, 100, date(2024, 3, 4))

        with pytest.raises(TransactionNotFoundError):
            service.get(db, profile.id, row.id)


# =============================================================================
# LIST
# =============================================================================

class TestList:

    def test_ordered_by_trade_date_then_id(self, service, db, profile):
        late = create_transaction(db, profile, BUY, 1, 100, date(2024, 3, 6))
        early = create_transaction(db, profile, BUY, 1, 100, date(2024, 3, 4))
        same_day = create_transaction(db, profile, BUY, 1, 100, date(2024, 3, 4))

        rows = service.list(db, profile.id)

        assert [r.id for r in rows] == [early.id, same_day.id, late.id]

    def test_filter_by_account(self, service, db, profile, account):
        in_account = create_transaction(db, profile, BUY, 1, 100, date(2024, 3, 4), account=account)
        unassigned = create_transaction(db, profile, BUY, 1, 100, date(2024, 3, 4))

        assert [r.id for r in service.list(db, profile.id, [str(account.id)])] == [in_account.id]
        assert [r.id for r in service.list(db, profile.id, ["__unassigned__"])] == [unassigned.id]
        assert len(service.list(db, profile.id, ["all"])) == 2
