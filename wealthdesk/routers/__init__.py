# wealthdesk/routers/__init__.py
"""
API routers.

- portfolio: Holdings, valuation history and per-account totals
- transactions: Ledger CRUD
- market_data: Market data synchronization
"""

from wealthdesk.routers.market_data import router as market_data_router
from wealthdesk.routers.portfolio import router as portfolio_router
from wealthdesk.routers.transactions import router as transactions_router

__all__ = [
    "portfolio_router",
    "transactions_router",
    "market_data_router",
]
