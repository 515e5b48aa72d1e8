# wealthdesk/services/market_data/base.py
"""
Abstract interface for market data providers.

This module defines the contract that all market data providers must follow.
Using an abstract base class allows for:
- Easy addition of new providers
- Mock implementations for testing
- Consistent retry behavior across all providers

The valuation engine only needs daily closes (instruments) and daily FX
rates (foreign → home), so that is all a provider has to deliver.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from wealthdesk.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

# Type variable for generic return type in retry method
T = TypeVar('T')


# =============================================================================
# DATA CLASSES - PRICE DATA
# =============================================================================

@dataclass(frozen=True)
class DailyClose:
    """
    Closing price (or FX rate) of one trading day.

    Attributes:
        date: Trading date (no time component)
        close: Closing price in the instrument's currency, or the FX rate
    """

    date: date
    close: Decimal

    def __post_init__(self) -> None:
        if self.close <= 0:
            raise ValueError(f"close price must be positive, got {self.close}")


@dataclass
class HistoricalPricesResult:
    """
    Result of fetching a daily close history.

    Attributes:
        ticker: The symbol requested (instrument ticker or FX pair symbol)
        prices: Daily closes (empty if failed)
        success: Whether the fetch was successful
        error: Error message if fetch failed
        from_date: Requested start date
        to_date: Requested end date
        actual_from_date: Earliest date in returned data
        actual_to_date: Latest date in returned data
    """

    ticker: str
    prices: list[DailyClose] = field(default_factory=list)
    success: bool = True
    error: str | None = None
    from_date: date | None = None
    to_date: date | None = None
    actual_from_date: date | None = None
    actual_to_date: date | None = None

    def __post_init__(self) -> None:
        if self.prices and self.actual_from_date is None:
            self.actual_from_date = min(p.date for p in self.prices)
        if self.prices and self.actual_to_date is None:
            self.actual_to_date = max(p.date for p in self.prices)

    @property
    def days_fetched(self) -> int:
        return len(self.prices)


@dataclass
class BatchPricesResult:
    """Results of fetching histories for several tickers, keyed by ticker."""

    results: dict[str, HistoricalPricesResult] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results.values() if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results.values() if not r.success)

    @property
    def all_successful(self) -> bool:
        return self.failure_count == 0


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Retry Behavior:
        The base class provides a `_execute_with_retry` method that implements
        exponential backoff retry logic. Subclasses can override the retry
        configuration by setting class attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)

    Retryable Exceptions:
        - ProviderUnavailableError: Network issues, timeouts, server errors
        - RateLimitError: API rate limit exceeded

    Non-Retryable Exceptions:
        - TickerNotFoundError: Permanent failure (ticker doesn't exist)
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    # =========================================================================
    # ABSTRACT PROPERTIES AND METHODS
    # =========================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier stored with every fetched row (e.g. "yahoo")."""
        pass

    @abstractmethod
    def get_historical_prices(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """
        Fetch daily closes for one instrument.

        Args:
            ticker: Instrument symbol (e.g. "005930.KS", "AAPL")
            start_date: Start date (inclusive)
            end_date: End date (inclusive)

        Raises:
            TickerNotFoundError: Ticker unknown to the provider
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass

    @abstractmethod
    def get_fx_history(
            self,
            base_currency: str,
            quote_currency: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """
        Fetch daily FX rates "1 base = rate quote".

        Raises:
            TickerNotFoundError: Pair unknown to the provider
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass

    def get_historical_prices_batch(
            self,
            requests: list[tuple[str, date, date]],
    ) -> BatchPricesResult:
        """
        Fetch daily closes for several instruments.

        Default implementation calls get_historical_prices() for each request
        and records failures instead of raising.

        Args:
            requests: List of (ticker, start_date, end_date) tuples
        """
        result = BatchPricesResult()

        for ticker, start_date, end_date in requests:
            key = ticker.upper()
            try:
                result.results[key] = self.get_historical_prices(ticker, start_date, end_date)
            except Exception as e:
                logger.error(f"Failed to fetch prices for {ticker}: {e}")
                result.results[key] = HistoricalPricesResult(
                    ticker=key,
                    success=False,
                    error=str(e),
                    from_date=start_date,
                    to_date=end_date,
                )

        return result

    # =========================================================================
    # RETRY HELPER METHOD
    # =========================================================================

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Retries ProviderUnavailableError and RateLimitError with exponential
        backoff; everything else propagates immediately.
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()
