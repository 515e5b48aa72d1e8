# wealthdesk/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

- errors: Error response formats
- market_data: Market data sync responses
- transactions: Ledger transaction CRUD
- validators: Reusable validation functions (ticker, currency, trade date)
- valuation: Holdings, history and per-account totals
"""

from wealthdesk.schemas.errors import ErrorDetail, ValidationErrorDetail
from wealthdesk.schemas.market_data import SyncResponse, TickerSyncResponse
from wealthdesk.schemas.transactions import (
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
)
from wealthdesk.schemas.valuation import (
    AccountTotalsListResponse,
    AccountTotalsResponse,
    AnomalyResponse,
    HistoryPointResponse,
    HistoryResponse,
    HoldingResponse,
    HoldingsResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Market data
    "SyncResponse",
    "TickerSyncResponse",
    # Transactions
    "TransactionCreate",
    "TransactionUpdate",
    "TransactionResponse",
    "TransactionListResponse",
    # Valuation
    "AnomalyResponse",
    "HoldingResponse",
    "HoldingsResponse",
    "HistoryPointResponse",
    "HistoryResponse",
    "AccountTotalsResponse",
    "AccountTotalsListResponse",
]
