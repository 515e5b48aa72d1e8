# wealthdesk/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer is responsible for mapping these to appropriate HTTP responses.

The replay engine itself never raises for data anomalies (oversells, missing
prices, missing FX); those flow through the anomaly reporter. Exceptions here
are for programmer errors, lookups of missing resources, rejected writes at
the transaction-acceptance boundary, and market data provider failures.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InvalidDateSeriesError
    │   ├── HistoryRangeTooLargeError
    │   ├── InvalidCalendarError
    │   ├── UnsupportedCurrencyError
    │   └── OversellError
    ├── NotFoundError
    │   ├── ProfileNotFoundError
    │   ├── AccountNotFoundError
    │   └── TransactionNotFoundError
    └── MarketDataError
        ├── ProviderUnavailableError
        ├── TickerNotFoundError
        └── RateLimitError
"""

from datetime import date
from decimal import Decimal


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input validation fails.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidDateSeriesError(ValidationError):
    """Raised when reconstruction dates are not strictly ascending."""

    def __init__(self, previous: date, current: date) -> None:
        self.previous = previous
        self.current = current
        super().__init__(
            f"Reconstruction dates must be strictly ascending and unique: "
            f"{current} follows {previous}",
            field="dates",
        )


class HistoryRangeTooLargeError(ValidationError):
    """Raised when a requested history exceeds the configured maximum span."""

    def __init__(self, days: int, max_days: int) -> None:
        self.days = days
        self.max_days = max_days
        super().__init__(
            f"Date range of {days} days exceeds maximum of {max_days} days",
            field="from_date",
        )


class InvalidCalendarError(ValidationError):
    """
    Raised when an unknown history calendar is requested.

    Valid calendars are: trading, daily, weekly, monthly
    """

    def __init__(self, calendar: str) -> None:
        self.calendar = calendar
        super().__init__(
            f"Invalid calendar: '{calendar}'. Valid options: trading, daily, weekly, monthly",
            field="calendar",
        )


class UnsupportedCurrencyError(ValidationError):
    """Raised when a transaction is entered in neither the home nor the foreign currency."""

    def __init__(self, currency: str, supported: tuple[str, ...]) -> None:
        self.currency = currency
        self.supported = supported
        super().__init__(
            f"Currency '{currency}' is not supported (expected one of: {', '.join(supported)})",
            field="currency",
        )


class OversellError(ValidationError):
    """
    Raised at the acceptance boundary when a write would drive a holding negative.

    Attributes:
        ticker: Instrument whose quantity would go negative
        trade_date: Date of the offending sell
        requested: Quantity the sell tried to dispose of
        available: Quantity held immediately before that sell
    """

    def __init__(
            self,
            ticker: str,
            trade_date: date,
            requested: Decimal,
            available: Decimal,
    ) -> None:
        self.ticker = ticker
        self.trade_date = trade_date
        self.requested = requested
        self.available = available
        super().__init__(
            f"Sell of {requested} {ticker} on {trade_date} exceeds held quantity {available}",
            field="quantity",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Profile", "Transaction")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class ProfileNotFoundError(NotFoundError):
    """Raised when a client profile cannot be found."""

    def __init__(self, profile_id: int) -> None:
        self.profile_id = profile_id
        super().__init__(
            f"Profile {profile_id} not found",
            resource_type="Profile",
            resource_id=profile_id,
        )


class AccountNotFoundError(NotFoundError):
    """Raised when an account does not exist or belongs to another profile."""

    def __init__(self, account_id: int, profile_id: int) -> None:
        self.account_id = account_id
        self.profile_id = profile_id
        super().__init__(
            f"Account {account_id} not found for profile {profile_id}",
            resource_type="Account",
            resource_id=account_id,
        )


class TransactionNotFoundError(NotFoundError):
    """Raised when a ledger transaction cannot be found."""

    def __init__(self, transaction_id: int) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} not found",
            resource_type="Transaction",
            resource_id=transaction_id,
        )


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider is temporarily unavailable.

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a ticker symbol is not found by the provider.

    This is NOT a retryable error.
    """

    def __init__(self, ticker: str, provider: str) -> None:
        message = f"Ticker '{ticker}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.ticker = ticker


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


__all__ = [
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
