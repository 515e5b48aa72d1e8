# wealthdesk/schemas/transactions.py
"""
Pydantic schemas for ledger transaction validation.

These schemas define:
- What data clients must send (Create / Update)
- What data the API returns (Response)

Validation layers:
- Field constraints: type, length, numeric limits
- Field validators: normalization (uppercase, trim), logical checks
- TransactionService: account ownership, supported currency, oversell

Updates replace the whole record (PUT), so TransactionUpdate carries the
same fields as TransactionCreate.

IMPORTANT: All financial values use Decimal for precision.
Never use float for money!
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wealthdesk.models import InstrumentClass, TransactionType
from wealthdesk.schemas.validators import validate_currency, validate_ticker, validate_trade_date


# =============================================================================
# BASE SCHEMA
# =============================================================================

class TransactionBase(BaseModel):
    """Fields common to Create, Update and Response."""

    account_id: int | None = Field(
        default=None,
        gt=0,
        description="Brokerage account (omit for an unassigned trade)"
    )

    transaction_type: TransactionType = Field(
        ...,
        description="Type of transaction",
        examples=[TransactionType.BUY, TransactionType.SELL]
    )

    instrument_class: InstrumentClass = Field(
        default=InstrumentClass.DOMESTIC_STOCK,
        description="Instrument category"
    )

    ticker: str = Field(
        ...,
        min_length=1,
        max_length=20,
        description="Instrument symbol",
        examples=["005930.KS", "AAPL", "QQQ"]
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Instrument display name",
        examples=["Samsung Electronics", "Apple Inc."]
    )

    quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Units traded (must be positive)",
        examples=["10", "0.5"]
    )

    trade_price: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Price per unit in the trade currency",
        examples=["71500", "170.50"]
    )

    currency: str = Field(
        default="KRW",
        min_length=3,
        max_length=3,
        description="Trade currency (home or foreign currency)",
        examples=["KRW", "USD"]
    )

    fx_rate_at_trade: Decimal | None = Field(
        default=None,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description=(
            "Home units per foreign unit applied by the broker. "
            "Omit to use the stored rate on or before the trade date. "
            "Ignored for home-currency trades."
        ),
        examples=["1330.5"]
    )

    fee: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Commission in home currency (kept out of cost basis)",
        examples=["0", "1500"]
    )

    trade_date: date = Field(
        ...,
        description="Date the trade was executed",
        examples=["2024-03-08"]
    )

    memo: str | None = Field(
        default=None,
        max_length=500,
        description="Free-form note"
    )

    # =========================================================================
    # FIELD VALIDATORS (Normalization & Validation)
    # =========================================================================

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return validate_currency(v)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Name cannot be blank")
        return stripped


# =============================================================================
# CREATE / UPDATE SCHEMAS
# =============================================================================

class TransactionCreate(TransactionBase):
    """Schema for recording a new trade."""

    @field_validator('trade_date')
    @classmethod
    def validate_date(cls, v: date) -> date:
        """Prevent recording trades that haven't happened yet."""
        return validate_trade_date(v)


class TransactionUpdate(TransactionCreate):
    """
    Schema for replacing an existing trade.

    The whole record is replaced; the row keeps its id, so its position
    among same-day trades does not change.
    """


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class TransactionResponse(TransactionBase):
    """Schema for API responses, including derived and database fields."""

    id: int = Field(..., description="Unique identifier (also the same-day replay order)")
    profile_id: int = Field(..., description="Owning profile")
    fx_rate_at_trade: Decimal = Field(..., description="Rate applied at trade time (1 for home)")
    unit_price: Decimal = Field(..., description="Home-currency unit price used for cost basis")
    created_at: datetime = Field(..., description="When the trade was recorded")

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    """Transactions of a profile, ordered by trade date then id."""

    items: list[TransactionResponse] = Field(..., description="Transactions")
    total: int = Field(..., ge=0, description="Number of transactions returned")
