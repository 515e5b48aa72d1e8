# wealthdesk/schemas/valuation.py
"""
Pydantic schemas for portfolio valuation.

These schemas handle:
- Holdings breakdown with cost basis and market value
- Valuation history (time series for charts)
- Per-account totals
- Anomalies surfaced by the ledger replay

All amounts are in the home currency, rounded to its smallest unit at the
router boundary.
"""

import datetime as dt
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ANOMALIES
# =============================================================================

class AnomalyResponse(BaseModel):
    """Data-integrity warning raised while replaying the ledger."""

    model_config = ConfigDict(from_attributes=True)

    kind: str = Field(..., description="OVERSELL, SELL_WITHOUT_POSITION, UNKNOWN_CURRENCY or FX_FALLBACK")
    message: str = Field(..., description="Human-readable description")
    ticker: str | None = Field(default=None, description="Instrument concerned")
    trade_date: dt.date | None = Field(default=None, description="Date concerned")
    account_id: int | str | None = Field(default=None, description="Account concerned")
    transaction_id: int | str | None = Field(default=None, description="Offending transaction")


# =============================================================================
# HOLDINGS
# =============================================================================

class HoldingResponse(BaseModel):
    """One open position valued on the valuation date."""

    ticker: str = Field(..., description="Instrument symbol")
    name: str = Field(..., description="Instrument display name")
    instrument_class: str = Field(..., description="Instrument category")
    currency: str = Field(..., description="Currency the instrument trades in")

    quantity: Decimal = Field(..., description="Units held")
    average_unit_price: Decimal = Field(..., description="Average home-currency cost per unit")
    total_invested: Decimal = Field(..., description="Remaining cost basis")
    fees_paid: Decimal = Field(..., description="Cumulative fees (not in cost basis)")

    price: Decimal | None = Field(..., description="Close in trade currency (None if unpriced)")
    price_date: dt.date | None = Field(..., description="Date of that close")
    fx_rate: Decimal | None = Field(..., description="FX rate applied (None for home currency)")
    market_value: Decimal = Field(..., description="Value in home currency")
    profit_loss: Decimal = Field(..., description="market_value - total_invested")
    profit_rate: Decimal | None = Field(..., description="Profit in percent of cost basis")
    price_source: str = Field(..., description="'market' or 'cost_carry' (valued at cost)")


class HoldingsResponse(BaseModel):
    """Open holdings of a ledger scope."""

    profile_id: int
    valuation_date: date
    home_currency: str
    account_ids: list[str] | None = Field(
        default=None,
        description="Selected accounts (None for all)"
    )
    holdings: list[HoldingResponse]
    total_invested: Decimal
    total_market_value: Decimal
    total_profit_loss: Decimal
    profit_rate: Decimal | None
    has_complete_data: bool = Field(
        ...,
        description="False if any holding was valued at cost for lack of a price"
    )
    anomalies: list[AnomalyResponse] = Field(default_factory=list)


# =============================================================================
# HISTORY
# =============================================================================

class HistoryPointResponse(BaseModel):
    """Single point of the valuation series."""

    date: dt.date
    invested: Decimal
    market_value: Decimal
    profit_loss: Decimal
    unpriced_count: int = Field(
        default=0,
        description="Holdings valued at cost on this date"
    )


class HistoryResponse(BaseModel):
    """Valuation series for charting."""

    profile_id: int
    home_currency: str
    calendar: str = Field(..., description="trading, daily, weekly or monthly")
    from_date: dt.date | None
    to_date: dt.date | None
    account_ids: list[str] | None = None
    points: list[HistoryPointResponse]
    anomalies: list[AnomalyResponse] = Field(default_factory=list)


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountTotalsResponse(BaseModel):
    """Invested amount and market value of one account."""

    account_id: str = Field(..., description="Account id, or '__unassigned__'")
    name: str | None = Field(default=None, description="Account name (None if unassigned)")
    account_type: str | None = None
    broker_name: str | None = None
    invested_amount: Decimal
    market_value: Decimal
    profit_loss: Decimal
    holdings_count: int


class AccountTotalsListResponse(BaseModel):
    """Per-account totals plus the "all" scope."""

    profile_id: int
    valuation_date: date
    home_currency: str
    accounts: list[AccountTotalsResponse]
    total: AccountTotalsResponse
