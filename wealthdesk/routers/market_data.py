# wealthdesk/routers/market_data.py
"""
Market data sync endpoint.

Fetches daily closes for every instrument of a profile's ledger (and the
FX series when any trade is in the foreign currency) and stores them, so
valuations served afterwards use fresh prices.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from wealthdesk.database import get_db
from wealthdesk.dependencies import get_sync_service
from wealthdesk.schemas.market_data import SyncResponse
from wealthdesk.services.market_data import MarketDataSyncService

router = APIRouter(
    prefix="/profiles",
    tags=["Market Data Sync"],
)


@router.post(
    "/{profile_id}/market-data/sync",
    response_model=SyncResponse,
    summary="Sync market data for a profile",
)
def sync_market_data(
        profile_id: int,
        end_date: date | None = Query(
            default=None,
            description="Last date to fetch (default: today)"
        ),
        db: Session = Depends(get_db),
        service: MarketDataSyncService = Depends(get_sync_service),
) -> SyncResponse:
    """
    Per-ticker failures are reported in `warnings` and `status` becomes
    `partial` (or `failed` when nothing could be fetched); they do not fail
    the request.
    """
    result = service.sync_profile(db, profile_id, end_date=end_date)
    return SyncResponse.model_validate(result)
