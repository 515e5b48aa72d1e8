# wealthdesk/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, ForeignKey, Enum, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class TransactionType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"


class InstrumentClass(str, enum.Enum):
    DOMESTIC_STOCK = "DOMESTIC_STOCK"
    FOREIGN_STOCK = "FOREIGN_STOCK"
    ETF = "ETF"
    FOREIGN_ETF = "FOREIGN_ETF"
    CRYPTO = "CRYPTO"
    FUND = "FUND"
    BOND = "BOND"
    OTHER = "OTHER"


class AccountType(str, enum.Enum):
    # Brokerage (securities) accounts
    GENERAL = "GENERAL"
    ISA = "ISA"
    PENSION_SAVINGS = "PENSION_SAVINGS"
    IRP = "IRP"
    DC = "DC"

    # Bank accounts (listed for completeness, never hold transactions)
    SAVINGS = "SAVINGS"
    DEPOSIT = "DEPOSIT"
    CHECKING = "CHECKING"
    OTHER = "OTHER"


SECURITIES_ACCOUNT_TYPES = frozenset({
    AccountType.GENERAL,
    AccountType.ISA,
    AccountType.PENSION_SAVINGS,
    AccountType.IRP,
    AccountType.DC,
})


class Profile(Base):
    """A consultant's client profile; owns accounts and the transaction ledger."""
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    accounts: Mapped[list["Account"]] = relationship(back_populates="profile", cascade="all, delete-orphan")
    transactions: Mapped[list["PortfolioTransaction"]] = relationship(
        back_populates="profile",
        cascade="all, delete-orphan"
    )
    custom_holdings: Mapped[list["CustomHolding"]] = relationship(
        back_populates="profile",
        cascade="all, delete-orphan"
    )


class Account(Base):
    """Brokerage or bank account belonging to a profile."""
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), index=True)
    name: Mapped[str] = mapped_column(String)
    broker_name: Mapped[str | None] = mapped_column(String, nullable=True)
    account_type: Mapped[AccountType] = mapped_column(Enum(AccountType), default=AccountType.GENERAL)

    # Manually entered extra balance (e.g. uninvested cash) added to market value
    additional_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))

    profile: Mapped["Profile"] = relationship(back_populates="accounts")
    transactions: Mapped[list["PortfolioTransaction"]] = relationship(back_populates="account")


class PortfolioTransaction(Base):
    """
    One buy/sell record in a profile's ledger.

    Append-only for accounting purposes: edits replace the whole record,
    deletes remove it. The autoincrement id doubles as the insertion
    sequence used to order same-day trades.
    """
    __tablename__ = "portfolio_transactions"
    __table_args__ = (
        # "All transactions for profile X ordered by trade date"
        Index('ix_portfolio_txn_profile_date', 'profile_id', 'trade_date'),
        # "All transactions for profile X in account Y ordered by trade date"
        Index('ix_portfolio_txn_profile_account_date', 'profile_id', 'account_id', 'trade_date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), index=True)
    account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"), nullable=True, index=True)

    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType))
    instrument_class: Mapped[InstrumentClass] = mapped_column(Enum(InstrumentClass))
    ticker: Mapped[str] = mapped_column(String, index=True)  # e.g. "005930.KS", "AAPL"
    name: Mapped[str] = mapped_column(String)

    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    # Price as entered, in the trade currency
    trade_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    currency: Mapped[str] = mapped_column(String(3))
    # Home units per foreign unit at the time of trade (1 for home-currency trades)
    fx_rate_at_trade: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(1))
    # Home-currency unit price after FX conversion, rounded at persistence
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    fee: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))

    trade_date: Mapped[date] = mapped_column(Date, index=True)
    memo: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    profile: Mapped["Profile"] = relationship(back_populates="transactions")
    account: Mapped["Account | None"] = relationship(back_populates="transactions")


class CustomHolding(Base):
    """Manually valued position (unlisted fund, private deal) outside the ledger."""
    __tablename__ = "custom_holdings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), index=True)
    account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"), nullable=True)
    name: Mapped[str] = mapped_column(String)
    principal: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    current_value: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))

    profile: Mapped["Profile"] = relationship(back_populates="custom_holdings")


class MarketData(Base):
    """
    Daily closing price per instrument.

    Sparse: weekends and holidays have no rows. Lookups carry the latest
    observation on or before the requested date forward.
    """
    __tablename__ = "market_data"
    __table_args__ = (
        UniqueConstraint('ticker', 'date', name='uq_market_data_ticker_date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String, index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    close_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    provider: Mapped[str] = mapped_column(String(50), default="yahoo")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )


class ExchangeRate(Base):
    """
    Historical exchange rates.

    Convention: rate represents "1 base_currency = X quote_currency".
    The ledger's series is base=foreign (USD), quote=home (KRW).
    """
    __tablename__ = "exchange_rates"
    __table_args__ = (
        UniqueConstraint('base_currency', 'quote_currency', 'date',
                         name='uq_exchange_rate_pair_date'),
        Index('ix_exchange_rate_quote_base_date', 'quote_currency', 'base_currency', 'date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    base_currency: Mapped[str] = mapped_column(String(3), index=True)
    quote_currency: Mapped[str] = mapped_column(String(3), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    provider: Mapped[str] = mapped_column(String(50), default="yahoo")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
