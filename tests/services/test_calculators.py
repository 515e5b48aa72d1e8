# tests/services/test_calculators.py
"""
Unit tests for point-in-time valuation.

These tests verify the pure valuation logic WITHOUT database dependencies.

Test Coverage:
- ValueCalculator: market pricing, FX conversion, cost carry, unknown currency
- PortfolioValuator: date filtering, ordering and totals
"""

from datetime import date
from decimal import Decimal

import pytest

from tests.conftest import fx_obs, make_txn, price_obs
from wealthdesk.models import InstrumentClass, TransactionType
from wealthdesk.services.valuation.calculators import (
    PRICE_SOURCE_COST_CARRY,
    PRICE_SOURCE_MARKET,
    PortfolioValuator,
    ValueCalculator,
)
from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.ledger import CostBasisLedger
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import CollectingAnomalyReporter, NullAnomalyReporter
from wealthdesk.services.valuation.types import AnomalyKind, HoldingState

BUY = TransactionType.BUY
SELL = TransactionType.SELL


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def converter() -> CurrencyConverter:
    return CurrencyConverter("KRW", "USD", Decimal("1400"), Decimal("1"), NullAnomalyReporter())


@pytest.fixture
def calculator(converter) -> ValueCalculator:
    return ValueCalculator(converter, NullAnomalyReporter())


@pytest.fixture
def valuator(calculator) -> PortfolioValuator:
    return PortfolioValuator(CostBasisLedger(NullAnomalyReporter()), calculator)


def _holding(ticker="005930.KS", currency="KRW", quantity=10, invested=10000) -> HoldingState:
    quantity, invested = Decimal(str(quantity)), Decimal(str(invested))
    return HoldingState(
        ticker=ticker,
        name=ticker,
        instrument_class=InstrumentClass.DOMESTIC_STOCK,
        currency=currency,
        quantity=quantity,
        average_unit_price=invested / quantity,
        total_invested=invested,
    )


# =============================================================================
# VALUE CALCULATOR
# =============================================================================

class TestValueCalculator:

    def test_home_currency_holding(self, calculator):
        series = PriceSeries.from_observations([price_obs("005930.KS", date(2024, 3, 8), 1200)])

        valuation = calculator.value(_holding(), date(2024, 3, 8), series)

        assert valuation.market_value == Decimal("12000")
        assert valuation.price == Decimal("1200")
        assert valuation.fx_rate is None
        assert valuation.price_source == PRICE_SOURCE_MARKET
        assert valuation.profit_loss == Decimal("2000")
        assert valuation.profit_rate == Decimal("20")

    def test_uses_carry_forward_close(self, calculator):
        series = PriceSeries.from_observations([price_obs("005930.KS", date(2024, 3, 8), 1200)])

        valuation = calculator.value(_holding(), date(2024, 3, 10), series)

        assert valuation.price_date == date(2024, 3, 8)
        assert valuation.market_value == Decimal("12000")

    def test_foreign_holding_is_converted(self, calculator):
        series = PriceSeries.from_observations(
            [price_obs("AAPL", date(2024, 3, 8), "170.50")],
            [fx_obs(date(2024, 3, 8), 1330)],
        )
        holding = _holding("AAPL", "USD", quantity=2, invested=400000)

        valuation = calculator.value(holding, date(2024, 3, 8), series)

        assert valuation.fx_rate == Decimal("1330")
        assert valuation.market_value == Decimal("453530.00")

    def test_foreign_holding_without_fx_uses_default_rate(self, calculator):
        series = PriceSeries.from_observations([price_obs("AAPL", date(2024, 3, 8), 100)])
        collector = CollectingAnomalyReporter()
        holding = _holding("AAPL", "USD", quantity=1, invested=130000)

        valuation = calculator.value(holding, date(2024, 3, 8), series, collector)

        assert valuation.fx_rate == Decimal("1400")
        assert valuation.market_value == Decimal("140000")
        assert [a.kind for a in collector.anomalies] == [AnomalyKind.FX_FALLBACK]

    def test_unpriced_holding_is_carried_at_cost(self, calculator):
        valuation = calculator.value(_holding(), date(2024, 3, 8), PriceSeries.empty())

        assert valuation.market_value == Decimal("10000")
        assert valuation.price is None
        assert valuation.price_source == PRICE_SOURCE_COST_CARRY
        assert not valuation.is_priced
        assert valuation.profit_loss == Decimal("0")

    def test_unknown_currency_is_valued_unconverted(self, calculator):
        series = PriceSeries.from_observations([price_obs("SAP.DE", date(2024, 3, 8), 180)])
        collector = CollectingAnomalyReporter()
        holding = _holding("SAP.DE", "EUR", quantity=2, invested=300)

        valuation = calculator.value(holding, date(2024, 3, 8), series, collector)

        assert valuation.market_value == Decimal("360")
        assert valuation.fx_rate is None
        anomaly = collector.anomalies[0]
        assert anomaly.kind == AnomalyKind.UNKNOWN_CURRENCY
        assert anomaly.ticker == "SAP.DE"

    def test_profit_rate_without_cost_basis(self, calculator):
        holding = _holding(quantity=1, invested=0)
        valuation = calculator.value(holding, date(2024, 3, 8), PriceSeries.empty())
        assert valuation.profit_rate is None


# =============================================================================
# PORTFOLIO VALUATOR
# =============================================================================

class TestPortfolioValuator:

    def test_values_open_holdings_sorted_by_ticker(self, valuator):
        txns = [
            make_txn(1, BUY, 10, 1000, date(2024, 3, 4), ticker="BBB"),
            make_txn(2, BUY, 5, 200, date(2024, 3, 4), ticker="AAA"),
        ]
        series = PriceSeries.from_observations([
            price_obs("AAA", date(2024, 3, 8), 300),
            price_obs("BBB", date(2024, 3, 8), 900),
        ])

        valuation = valuator.valuate(txns, series, date(2024, 3, 8))

        assert [h.holding.ticker for h in valuation.holdings] == ["AAA", "BBB"]
        assert valuation.total_invested == Decimal("11000")
        assert valuation.total_market_value == Decimal("10500")
        assert valuation.total_profit_loss == Decimal("-500")
        assert valuation.home_currency == "KRW"
        assert valuation.has_complete_data

    def test_ignores_trades_after_valuation_date(self, valuator):
        txns = [
            make_txn(1, BUY, 10, 1000, date(2024, 3, 4)),
            make_txn(2, SELL, 10, 1100, date(2024, 3, 20)),
        ]

        valuation = valuator.valuate(txns, PriceSeries.empty(), date(2024, 3, 8))

        assert len(valuation.holdings) == 1
        assert valuation.holdings[0].holding.quantity == Decimal("10")

    def test_partially_priced_portfolio(self, valuator):
        txns = [
            make_txn(1, BUY, 10, 1000, date(2024, 3, 4), ticker="AAA"),
            make_txn(2, BUY, 1, 5000, date(2024, 3, 4), ticker="NEW"),
        ]
        series = PriceSeries.from_observations([price_obs("AAA", date(2024, 3, 8), 1100)])

        valuation = valuator.valuate(txns, series, date(2024, 3, 8))

        assert valuation.total_market_value == Decimal("16000")
        assert not valuation.has_complete_data

    def test_empty_ledger(self, valuator):
        valuation = valuator.valuate([], PriceSeries.empty(), date(2024, 3, 8))

        assert valuation.holdings == []
        assert valuation.total_market_value == Decimal("0")
        assert valuation.profit_rate is None
