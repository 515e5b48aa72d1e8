# wealthdesk/services/valuation/types.py
"""
Internal data types for the valuation engine.

These dataclasses are the engine's in-process data contracts. They are NOT
Pydantic schemas (those live in wealthdesk/schemas/) and NOT ORM models
(wealthdesk/models.py); the repository maps rows into them.

Design Principles:
- Immutable inputs (frozen=True for ledger rows and observations)
- Use Decimal for ALL financial values (never float)
- Use date (not datetime) for trade and valuation dates
- Optional fields use None, not sentinel values

Type Hierarchy:
    Transaction         - One ledger row (buy or sell)
    PriceObservation    - One closing price for one instrument on one date
    FxObservation       - One FX rate (home per foreign unit) on one date
    HoldingState        - Running quantity / cost basis for one instrument
    HoldingValuation    - A HoldingState valued at a date
    PortfolioValuation  - All holdings of a ledger scope valued at a date
    AccountTotals       - Invested / market value per account
    HistoryPoint        - One date of a reconstructed series
    ValuationSeries     - Reconstructed invested / market value arrays
    Anomaly             - Data-integrity observation raised during replay
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from wealthdesk.models import InstrumentClass, TransactionType

ZERO = Decimal("0")


# =============================================================================
# LEDGER INPUT
# =============================================================================

@dataclass(frozen=True)
class Transaction:
    """
    One buy/sell record of the ledger.

    Attributes:
        id: Persistent identifier
        sequence: Insertion sequence number; orders trades sharing a trade_date
        account_id: Owning brokerage account (None when unassigned)
        ticker: Instrument symbol (e.g. "005930.KS", "AAPL")
        name: Instrument display name
        instrument_class: Instrument category
        transaction_type: BUY or SELL
        quantity: Units traded (always positive)
        unit_price: Home-currency price per unit, after FX conversion
        currency: Currency the instrument trades in
        fx_rate_at_trade: Home units per foreign unit at trade time (1 for home)
        fee: Commission paid (0 or positive), kept out of cost basis
        trade_date: Date of the trade
        memo: Free-form note
    """

    id: int | str
    sequence: int
    account_id: int | str | None
    ticker: str
    name: str
    instrument_class: InstrumentClass
    transaction_type: TransactionType
    quantity: Decimal
    unit_price: Decimal
    currency: str
    trade_date: date
    fx_rate_at_trade: Decimal = Decimal("1")
    fee: Decimal = ZERO
    memo: str | None = None

    @property
    def is_buy(self) -> bool:
        return self.transaction_type == TransactionType.BUY

    @property
    def gross_amount(self) -> Decimal:
        """Home-currency amount of the trade, excluding fee."""
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class PriceObservation:
    """Closing price of one instrument on one trading day."""

    ticker: str
    date: date
    close_price: Decimal


@dataclass(frozen=True)
class FxObservation:
    """FX rate on one day: 1 foreign unit = rate home units."""

    date: date
    rate: Decimal


@dataclass(frozen=True)
class Account:
    """
    Brokerage account metadata used for per-account aggregation.

    additional_amount is a manually entered balance added on top of the
    account's market value.
    """

    id: int | str
    name: str
    account_type: str
    broker_name: str | None = None
    additional_amount: Decimal = ZERO


@dataclass(frozen=True)
class CustomHolding:
    """Manually valued position that lives outside the transaction ledger."""

    id: int | str
    account_id: int | str | None
    name: str
    principal: Decimal
    current_value: Decimal


# =============================================================================
# DERIVED STATE
# =============================================================================

@dataclass
class HoldingState:
    """
    Running cost-basis state of one instrument within a ledger scope.

    Invariants (under valid input):
        total_invested == quantity × average_unit_price
        quantity == 0  ⇒  total_invested == 0

    Attributes:
        ticker: Instrument symbol
        name: Instrument display name (first seen)
        instrument_class: Instrument category (first seen)
        currency: Trading currency (first seen)
        quantity: Units held; may go negative only on oversold data
        average_unit_price: Blended home-currency cost per unit
        total_invested: Remaining cost basis in home currency
        fees_paid: Cumulative fees, reported separately from cost basis
    """

    ticker: str
    name: str
    instrument_class: InstrumentClass
    currency: str
    quantity: Decimal = ZERO
    average_unit_price: Decimal = ZERO
    total_invested: Decimal = ZERO
    fees_paid: Decimal = ZERO

    @property
    def is_open(self) -> bool:
        """True if units are currently held."""
        return self.quantity > ZERO

    def copy(self) -> HoldingState:
        return replace(self)


@dataclass(frozen=True)
class HoldingValuation:
    """
    A holding valued on a specific date.

    Attributes:
        holding: The cost-basis state being valued
        valuation_date: Date the valuation refers to
        price: Carry-forward close price in the instrument's currency (None if unpriced)
        price_date: Date of that price observation
        fx_rate: Rate applied for a foreign instrument (None for home)
        market_value: Home-currency value; equals total_invested when unpriced
        price_source: "market" or "cost_carry"
    """

    holding: HoldingState
    valuation_date: date
    price: Decimal | None
    price_date: date | None
    fx_rate: Decimal | None
    market_value: Decimal
    price_source: str = "market"

    @property
    def is_priced(self) -> bool:
        return self.price_source == "market"

    @property
    def profit_loss(self) -> Decimal:
        return self.market_value - self.holding.total_invested

    @property
    def profit_rate(self) -> Decimal | None:
        """Profit as a percentage of cost basis (None when nothing is invested)."""
        if self.holding.total_invested <= ZERO:
            return None
        return (self.profit_loss / self.holding.total_invested) * Decimal("100")


@dataclass
class PortfolioValuation:
    """
    Every open holding of a ledger scope valued on one date.

    Totals are unrounded; rounding to the home currency unit happens at the
    response boundary.
    """

    valuation_date: date
    home_currency: str
    holdings: list[HoldingValuation]
    anomalies: list[Anomaly] = field(default_factory=list)

    @property
    def total_invested(self) -> Decimal:
        return sum((h.holding.total_invested for h in self.holdings), ZERO)

    @property
    def total_market_value(self) -> Decimal:
        return sum((h.market_value for h in self.holdings), ZERO)

    @property
    def total_profit_loss(self) -> Decimal:
        return self.total_market_value - self.total_invested

    @property
    def profit_rate(self) -> Decimal | None:
        invested = self.total_invested
        if invested <= ZERO:
            return None
        return (self.total_profit_loss / invested) * Decimal("100")

    @property
    def has_complete_data(self) -> bool:
        """True if every holding was valued at a market price."""
        return all(h.is_priced for h in self.holdings)


@dataclass
class AccountTotals:
    """Invested amount and market value of one account (or of "all")."""

    invested_amount: Decimal = ZERO
    market_value: Decimal = ZERO
    holdings_count: int = 0

    @property
    def profit_loss(self) -> Decimal:
        return self.market_value - self.invested_amount


# =============================================================================
# HISTORY (Time series for charts)
# =============================================================================

@dataclass(frozen=True)
class HistoryPoint:
    """
    A single point of a reconstructed valuation series.

    Attributes:
        date: Date of this data point
        invested: Sum of remaining cost basis of open holdings
        market_value: Sum of holding values (cost-carried when unpriced)
        unpriced_count: Holdings valued at cost for lack of a price
    """

    date: date
    invested: Decimal
    market_value: Decimal
    unpriced_count: int = 0

    @property
    def profit_loss(self) -> Decimal:
        return self.market_value - self.invested

    @property
    def has_complete_data(self) -> bool:
        return self.unpriced_count == 0


@dataclass
class ValuationSeries:
    """
    Reconstructed history aligned 1:1 with the requested dates.

    The parallel arrays are the engine's output contract; `points` is a
    row-oriented view for serialization.
    """

    dates: list[date] = field(default_factory=list)
    invested: list[Decimal] = field(default_factory=list)
    market_value: list[Decimal] = field(default_factory=list)
    unpriced_counts: list[int] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)

    def append(self, on_date: date, invested: Decimal, market_value: Decimal, unpriced: int) -> None:
        self.dates.append(on_date)
        self.invested.append(invested)
        self.market_value.append(market_value)
        self.unpriced_counts.append(unpriced)

    def __len__(self) -> int:
        return len(self.dates)

    @property
    def points(self) -> list[HistoryPoint]:
        return [
            HistoryPoint(
                date=d,
                invested=inv,
                market_value=mv,
                unpriced_count=unpriced,
            )
            for d, inv, mv, unpriced in zip(
                self.dates, self.invested, self.market_value, self.unpriced_counts
            )
        ]


# =============================================================================
# ANOMALIES
# =============================================================================

class AnomalyKind(str, enum.Enum):
    OVERSELL = "OVERSELL"  # Sell quantity exceeds held quantity
    SELL_WITHOUT_POSITION = "SELL_WITHOUT_POSITION"  # Sell with nothing held
    UNKNOWN_CURRENCY = "UNKNOWN_CURRENCY"  # Neither home nor foreign currency
    FX_FALLBACK = "FX_FALLBACK"  # No FX observation, default rate used


@dataclass(frozen=True)
class Anomaly:
    """
    Data-integrity observation made during a replay.

    The engine reports anomalies instead of raising; the presentation layer
    decides whether to show a warning or hard-fail.
    """

    kind: AnomalyKind
    message: str
    ticker: str | None = None
    trade_date: date | None = None
    account_id: int | str | None = None
    transaction_id: int | str | None = None
    quantity: Decimal | None = None
    available: Decimal | None = None
