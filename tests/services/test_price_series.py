# tests/services/test_price_series.py
"""
Tests for the carry-forward PriceSeries lookups.
"""

from datetime import date
from decimal import Decimal

from tests.conftest import fx_obs, price_obs
from wealthdesk.services.valuation.price_series import PriceSeries

FRI = date(2024, 3, 8)
SAT = date(2024, 3, 9)
MON = date(2024, 3, 11)
TUE = date(2024, 3, 12)


def _series() -> PriceSeries:
    return PriceSeries.from_observations(
        prices=[
            price_obs("AAPL", FRI, "170.50"),
            price_obs("AAPL", MON, "172.00"),
            price_obs("005930.KS", MON, 71500),
        ],
        fx_rates=[fx_obs(FRI, 1330), fx_obs(TUE, 1335)],
    )


class TestPriceLookup:

    def test_exact_date(self):
        assert _series().price_on_or_before("AAPL", MON) == Decimal("172.00")

    def test_carries_forward_over_weekend(self):
        series = _series()
        assert series.price_on_or_before("AAPL", SAT) == Decimal("170.50")
        assert series.price_observation_on_or_before("AAPL", SAT) == (FRI, Decimal("170.50"))

    def test_before_first_observation_is_none(self):
        assert _series().price_on_or_before("005930.KS", FRI) is None

    def test_unknown_ticker_is_none(self):
        series = _series()
        assert series.price_on_or_before("MSFT", TUE) is None
        assert series.latest_price("MSFT") is None

    def test_lookup_is_case_insensitive(self):
        assert _series().price_on_or_before("aapl", TUE) == Decimal("172.00")

    def test_latest_price(self):
        assert _series().latest_price("AAPL") == (MON, Decimal("172.00"))

    def test_last_duplicate_observation_wins(self):
        series = PriceSeries.from_observations(
            prices=[price_obs("AAPL", FRI, 170), price_obs("AAPL", FRI, 171)],
        )
        assert series.price_on_or_before("AAPL", FRI) == Decimal("171")

    def test_unsorted_input(self):
        series = PriceSeries.from_observations(
            prices=[price_obs("AAPL", MON, 2), price_obs("AAPL", FRI, 1)],
        )
        assert series.price_on_or_before("AAPL", SAT) == Decimal("1")


class TestFxLookup:

    def test_carry_forward(self):
        series = _series()
        assert series.fx_on_or_before(MON) == Decimal("1330")
        assert series.fx_observation_on_or_before(TUE) == (TUE, Decimal("1335"))

    def test_no_rate_before_first_observation(self):
        assert _series().fx_on_or_before(date(2024, 3, 1)) is None

    def test_has_fx(self):
        assert _series().has_fx is True
        assert PriceSeries.empty().has_fx is False

    def test_latest_fx(self):
        assert _series().latest_fx() == (TUE, Decimal("1335"))
        assert PriceSeries.empty().latest_fx() is None


class TestCalendar:

    def test_tickers(self):
        assert _series().tickers == frozenset({"AAPL", "005930.KS"})

    def test_price_dates_union(self):
        assert _series().price_dates() == [FRI, MON]

    def test_price_dates_for_selected_tickers(self):
        assert _series().price_dates(tickers=["005930.ks"]) == [MON]
        assert _series().price_dates(tickers=["MSFT"]) == []

    def test_price_dates_range(self):
        assert _series().price_dates(start=SAT, end=TUE) == [MON]

    def test_empty_series(self):
        series = PriceSeries.empty()
        assert series.tickers == frozenset()
        assert series.price_dates() == []
