# wealthdesk/services/__init__.py
"""
Service layer for business logic.

Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions as parameters (not via Depends)
- Are easily testable via dependency injection

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── transaction_service.py       # Ledger writes with oversell protection
    ├── market_data/                 # Market data package
    │   ├── base.py                  # Abstract provider interface
    │   ├── yahoo.py                 # Yahoo Finance implementation
    │   └── sync_service.py          # Sync orchestration service
    └── valuation/                   # Holdings and valuation engine
        ├── service.py               # Main valuation orchestrator
        ├── ledger.py                # Cost-basis replay
        ├── repository.py            # ORM rows → engine value objects
        ├── calculators.py           # Point-in-time valuation
        └── history_calculator.py    # Time series reconstruction
"""

from wealthdesk.services.exceptions import (
    AccountNotFoundError,
    HistoryRangeTooLargeError,
    InvalidCalendarError,
    InvalidDateSeriesError,
    MarketDataError,
    NotFoundError,
    OversellError,
    ProfileNotFoundError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    TickerNotFoundError,
    TransactionNotFoundError,
    UnsupportedCurrencyError,
    ValidationError,
)
from wealthdesk.services.valuation.repository import LedgerRepository
from wealthdesk.services.market_data import (
    MarketDataProvider,
    MarketDataSyncService,
    SyncResult,
    YahooFinanceProvider,
)
from wealthdesk.services.transaction_service import TransactionService
from wealthdesk.services.valuation import ValuationService

__all__ = [
    # ==========================================================================
    # Services
    # ==========================================================================
    "ValuationService",
    "TransactionService",
    "LedgerRepository",
    "MarketDataSyncService",
    "SyncResult",
    "MarketDataProvider",
    "YahooFinanceProvider",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    "ServiceError",
    "ValidationError",
    "InvalidDateSeriesError",
    "HistoryRangeTooLargeError",
    "InvalidCalendarError",
    "UnsupportedCurrencyError",
    "OversellError",
    "NotFoundError",
    "ProfileNotFoundError",
    "AccountNotFoundError",
    "TransactionNotFoundError",
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
]
