# wealthdesk/routers/transactions.py
"""
Ledger transaction endpoints.

Key concepts:
- Each transaction belongs to ONE profile and at most one account
- Updates replace the whole record (PUT) and keep the transaction id,
  which is also its position among same-day trades
- Sells that would exceed the held quantity are rejected (400), and so are
  updates and deletes that would make a later sell exceed it
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from wealthdesk.database import get_db
from wealthdesk.dependencies import get_transaction_service
from wealthdesk.schemas.transactions import (
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
)
from wealthdesk.services.transaction_service import TransactionService


# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/profiles",
    tags=["Transactions"],
)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/{profile_id}/transactions",
    response_model=TransactionListResponse,
    summary="List transactions",
)
def list_transactions(
        profile_id: int,
        account_id: list[str] | None = Query(
            default=None,
            description="Account ids to include (repeatable; default: all)"
        ),
        db: Session = Depends(get_db),
        service: TransactionService = Depends(get_transaction_service),
) -> TransactionListResponse:
    """Transactions ordered by trade date, then id."""
    rows = service.list(db, profile_id, account_ids=account_id)
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(r) for r in rows],
        total=len(rows),
    )


@router.get(
    "/{profile_id}/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a transaction",
)
def get_transaction(
        profile_id: int,
        transaction_id: int,
        db: Session = Depends(get_db),
        service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    return TransactionResponse.model_validate(service.get(db, profile_id, transaction_id))


@router.post(
    "/{profile_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
)
def create_transaction(
        profile_id: int,
        data: TransactionCreate,
        db: Session = Depends(get_db),
        service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    """
    Record a buy or sell.

    Foreign-currency trades store the home-currency unit price, computed from
    `fx_rate_at_trade` or, when omitted, the stored rate on or before the
    trade date.
    """
    row = service.create(db, profile_id, data)
    return TransactionResponse.model_validate(row)


@router.put(
    "/{profile_id}/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Replace a transaction",
)
def update_transaction(
        profile_id: int,
        transaction_id: int,
        data: TransactionUpdate,
        db: Session = Depends(get_db),
        service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    row = service.update(db, profile_id, transaction_id, data)
    return TransactionResponse.model_validate(row)


@router.delete(
    "/{profile_id}/transactions/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a transaction",
)
def delete_transaction(
        profile_id: int,
        transaction_id: int,
        db: Session = Depends(get_db),
        service: TransactionService = Depends(get_transaction_service),
) -> None:
    service.delete(db, profile_id, transaction_id)
