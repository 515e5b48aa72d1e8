# tests/services/test_currency.py
"""
Tests for CurrencyConverter.

Test Coverage:
- Home / foreign classification
- Carry-forward rate resolution and the default-rate fallback
- Explicit-rate conversion and home-currency rounding
"""

from datetime import date
from decimal import Decimal

import pytest

from tests.conftest import fx_obs
from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import CollectingAnomalyReporter
from wealthdesk.services.valuation.types import AnomalyKind


@pytest.fixture
def converter() -> CurrencyConverter:
    return CurrencyConverter(
        home_currency="KRW",
        foreign_currency="USD",
        default_rate=Decimal("1400"),
        quantum=Decimal("1"),
    )


class TestClassification:

    def test_home_and_foreign(self, converter):
        assert converter.is_home("krw")
        assert converter.is_foreign("USD")
        assert not converter.is_foreign("KRW")

    def test_recognizes(self, converter):
        assert converter.recognizes("usd")
        assert not converter.recognizes("EUR")
        assert converter.supported_currencies == ("KRW", "USD")

    def test_defaults_from_settings(self):
        converter = CurrencyConverter()
        assert converter.home_currency == "KRW"
        assert converter.foreign_currency == "USD"
        assert converter.default_rate == Decimal("1400")

    def test_non_positive_default_rate_rejected(self):
        with pytest.raises(ValueError):
            CurrencyConverter(default_rate=Decimal("0"))


class TestRateResolution:

    def test_exact_rate(self, converter):
        series = PriceSeries.from_observations(fx_rates=[fx_obs(date(2024, 3, 8), 1330)])

        resolution = converter.resolve_rate(date(2024, 3, 8), series)

        assert resolution.rate == Decimal("1330")
        assert resolution.is_exact_match
        assert not resolution.is_fallback

    def test_carry_forward_rate(self, converter):
        series = PriceSeries.from_observations(fx_rates=[fx_obs(date(2024, 3, 8), 1330)])

        resolution = converter.resolve_rate(date(2024, 3, 11), series)

        assert resolution.rate == Decimal("1330")
        assert resolution.rate_date == date(2024, 3, 8)
        assert not resolution.is_exact_match

    def test_missing_rate_falls_back_to_default(self, converter):
        collector = CollectingAnomalyReporter()

        resolution = converter.resolve_rate(date(2024, 3, 8), PriceSeries.empty(), collector)

        assert resolution.is_fallback
        assert resolution.rate == Decimal("1400")
        assert resolution.rate_date is None
        assert [a.kind for a in collector.anomalies] == [AnomalyKind.FX_FALLBACK]

    def test_lookup_rate_does_not_report(self):
        collector = CollectingAnomalyReporter()
        quiet = CurrencyConverter("KRW", "USD", Decimal("1400"), reporter=collector)

        resolution = quiet.lookup_rate(date(2024, 3, 8), PriceSeries.empty())

        assert resolution.is_fallback
        assert resolution.rate == Decimal("1400")
        assert len(collector) == 0

    def test_foreign_buy_without_fx_uses_default(self, converter):
        """A foreign trade with no FX history is converted at the default rate, never zero."""
        collector = CollectingAnomalyReporter()

        value = converter.to_home(Decimal("100"), date(2024, 3, 8), PriceSeries.empty(), collector)

        assert value == Decimal("140000")
        assert len(collector) == 1


class TestConversion:

    def test_to_home(self, converter):
        series = PriceSeries.from_observations(fx_rates=[fx_obs(date(2024, 3, 8), 1330)])
        assert converter.to_home(Decimal("170.50"), date(2024, 3, 8), series) == Decimal("226765.00")

    def test_convert_with_rate(self, converter):
        assert converter.convert_with_rate(Decimal("10"), Decimal("1350.5")) == Decimal("13505.0")

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-1")])
    def test_convert_with_invalid_rate(self, converter, rate):
        with pytest.raises(ValueError):
            converter.convert_with_rate(Decimal("10"), rate)

    @pytest.mark.parametrize("amount,expected", [
        (Decimal("226765.49"), Decimal("226765")),
        (Decimal("226765.50"), Decimal("226766")),
        (Decimal("-0.5"), Decimal("-1")),
    ])
    def test_round_home(self, converter, amount, expected):
        assert converter.round_home(amount) == expected

    def test_round_home_custom_quantum(self):
        converter = CurrencyConverter(quantum=Decimal("0.01"))
        assert converter.round_home(Decimal("1.005")) == Decimal("1.01")
