# wealthdesk/services/market_data/__init__.py
"""
Market data package.

Provides:
- MarketDataProvider: Abstract interface for daily close / FX providers
- YahooFinanceProvider: yfinance implementation
- MarketDataSyncService: Fills market_data / exchange_rates for a profile
"""

from wealthdesk.services.market_data.base import (
    BatchPricesResult,
    DailyClose,
    HistoricalPricesResult,
    MarketDataProvider,
)
from wealthdesk.services.market_data.sync_service import (
    MarketDataSyncService,
    ProfileAnalysis,
    SyncResult,
    TickerSyncResult,
)
from wealthdesk.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    # Provider interface
    "MarketDataProvider",
    "DailyClose",
    "HistoricalPricesResult",
    "BatchPricesResult",
    # Concrete providers
    "YahooFinanceProvider",
    # Sync service
    "MarketDataSyncService",
    "ProfileAnalysis",
    "SyncResult",
    "TickerSyncResult",
]
