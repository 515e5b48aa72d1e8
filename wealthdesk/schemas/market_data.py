# wealthdesk/schemas/market_data.py
"""
Pydantic schemas for market data synchronization.
"""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class TickerSyncResponse(BaseModel):
    """Outcome for a single ticker."""

    model_config = ConfigDict(from_attributes=True)

    ticker: str
    success: bool
    prices_fetched: int = 0
    error: str | None = None


class SyncResponse(BaseModel):
    """Response from a profile sync."""

    model_config = ConfigDict(from_attributes=True)

    profile_id: int
    status: str = Field(..., description="completed, partial, or failed")
    sync_started: dt.datetime
    sync_completed: dt.datetime | None = None
    tickers_synced: int = 0
    tickers_failed: int = 0
    prices_fetched: int = 0
    fx_rates_fetched: int = 0
    from_date: dt.date | None = Field(default=None, description="First date fetched")
    to_date: dt.date | None = Field(default=None, description="Last date fetched")
    ticker_results: list[TickerSyncResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
