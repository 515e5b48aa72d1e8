# wealthdesk/dependencies.py
"""
Dependency injection module for FastAPI services.

Singleton service instances shared across all requests, so the price data
cache is shared too: a ledger write or a sync through one service
invalidates what the valuation service would otherwise serve.

Services are lazily initialized on first use to avoid import-time side effects.

Usage in routers:
    from wealthdesk.dependencies import get_valuation_service

    @router.get("/")
    def holdings(service: ValuationService = Depends(get_valuation_service)):
        ...
"""

import logging
from functools import lru_cache

from wealthdesk.config import settings
from wealthdesk.services.market_data.sync_service import MarketDataSyncService
from wealthdesk.services.market_data.yahoo import YahooFinanceProvider
from wealthdesk.services.transaction_service import TransactionService
from wealthdesk.services.valuation.cache import PriceDataCache
from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.repository import LedgerRepository
from wealthdesk.services.valuation.service import ValuationService

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_price_cache, get_currency_converter, get_ledger_repository (no deps)
# 2. get_market_data_provider (no deps)
# 3. get_valuation_service, get_transaction_service (cache, converter, repository)
# 4. get_sync_service (provider, cache)


@lru_cache(maxsize=1)
def get_price_cache() -> PriceDataCache:
    """The one price data cache every service reads or invalidates."""
    logger.debug("Initializing singleton PriceDataCache")
    return PriceDataCache(ttl_seconds=settings.price_cache_ttl_seconds)


@lru_cache(maxsize=1)
def get_currency_converter() -> CurrencyConverter:
    logger.debug("Initializing singleton CurrencyConverter")
    return CurrencyConverter()


@lru_cache(maxsize=1)
def get_ledger_repository() -> LedgerRepository:
    return LedgerRepository()


@lru_cache(maxsize=1)
def get_market_data_provider() -> YahooFinanceProvider:
    logger.debug("Initializing singleton YahooFinanceProvider")
    return YahooFinanceProvider()


@lru_cache(maxsize=1)
def get_valuation_service() -> ValuationService:
    logger.debug("Initializing singleton ValuationService")
    return ValuationService(
        repository=get_ledger_repository(),
        price_cache=get_price_cache(),
        converter=get_currency_converter(),
    )


@lru_cache(maxsize=1)
def get_transaction_service() -> TransactionService:
    logger.debug("Initializing singleton TransactionService")
    return TransactionService(
        repository=get_ledger_repository(),
        converter=get_currency_converter(),
        price_cache=get_price_cache(),
    )


@lru_cache(maxsize=1)
def get_sync_service() -> MarketDataSyncService:
    """
    Shares the provider across requests so retries and rate limits are
    respected globally.
    """
    logger.debug("Initializing singleton MarketDataSyncService")
    return MarketDataSyncService(
        provider=get_market_data_provider(),
        price_cache=get_price_cache(),
    )


# =============================================================================
# CACHE MANAGEMENT
# =============================================================================

def clear_service_caches() -> None:
    """
    Drop every singleton; new instances are created on next use.

    Useful for testing or when you need to reset state.
    """
    get_price_cache.cache_clear()
    get_currency_converter.cache_clear()
    get_ledger_repository.cache_clear()
    get_market_data_provider.cache_clear()
    get_valuation_service.cache_clear()
    get_transaction_service.cache_clear()
    get_sync_service.cache_clear()
    logger.info("Cleared all service singleton caches")
