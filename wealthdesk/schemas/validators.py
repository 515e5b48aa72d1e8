# wealthdesk/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

This module provides:
- Ticker validation and normalization
- Currency code validation
- Date validation

These validators ensure consistent input handling across all schemas.
"""

import re
from datetime import date

# =============================================================================
# CONSTANTS
# =============================================================================

# Ticker: alphanumeric plus dots, dashes and '=' for listings like
# 005930.KS, BTC-USD, USDKRW=X; may start with a caret for indices (^KS11)
TICKER_PATTERN = re.compile(r'^[\^]?[A-Z0-9][A-Z0-9.\-=]{0,19}$')
TICKER_MAX_LENGTH = 20

# Currency: ISO 4217 format (3 uppercase letters)
CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')

MIN_VALID_DATE = date(1970, 1, 1)


# =============================================================================
# TICKER VALIDATION
# =============================================================================

def validate_ticker(value: str) -> str:
    """
    Validate and normalize a ticker symbol.

    Valid formats:
    - Domestic listings: 005930.KS, 035720.KQ
    - Foreign tickers: AAPL, BRK.B
    - Crypto pairs: BTC-USD

    Raises:
        ValueError: If ticker format is invalid
    """
    if not value:
        raise ValueError("Ticker cannot be empty")

    normalized = value.strip().upper()

    if len(normalized) > TICKER_MAX_LENGTH:
        raise ValueError(f"Ticker cannot exceed {TICKER_MAX_LENGTH} characters")

    if not TICKER_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid ticker format: '{normalized}'. "
            "Ticker must be alphanumeric and may include dots (.), dashes (-) or '='"
        )

    return normalized


# =============================================================================
# CURRENCY VALIDATION
# =============================================================================

def validate_currency(value: str) -> str:
    """
    Normalize and validate an ISO 4217 currency code.

    Raises:
        ValueError: If the code is not three letters
    """
    normalized = value.strip().upper() if value else ""
    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(f"Invalid currency code: '{value}'. Expected 3 letters (e.g. KRW, USD)")
    return normalized


# =============================================================================
# DATE VALIDATION
# =============================================================================

def validate_trade_date(value: date) -> date:
    """
    Validate a trade date: not in the future, not before 1970.

    Raises:
        ValueError: If the date is out of range
    """
    if value < MIN_VALID_DATE:
        raise ValueError(f"Trade date cannot be before {MIN_VALID_DATE}")
    if value > date.today():
        raise ValueError("Trade date cannot be in the future")
    return value
