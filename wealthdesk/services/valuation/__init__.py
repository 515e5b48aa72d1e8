# wealthdesk/services/valuation/__init__.py
"""
Valuation Service Package.

This package provides the portfolio holdings and valuation engine:
- Current holdings and cost basis (get_holdings)
- Valuation history for charts (get_history)
- Per-account totals (get_account_totals)

Usage:
    from wealthdesk.services.valuation import ValuationService

    service = ValuationService()
    holdings = service.get_holdings(db, profile_id=1)

Architecture:
    valuation/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Internal data classes
    ├── price_series.py          # Carry-forward price / FX lookup
    ├── ledger.py                # Cost-basis replay
    ├── currency.py              # Foreign → home conversion
    ├── calculators.py           # Point-in-time valuation
    ├── history_calculator.py    # Time series reconstruction
    ├── accounts.py              # Account filtering and totals
    ├── reporting.py             # Anomaly reporters
    ├── cache.py                 # Injected price data cache
    ├── repository.py            # ORM rows → engine value objects
    └── service.py               # ValuationService (orchestrator)

Data Flow:
    Transactions → CostBasisLedger → HoldingState per instrument
    HoldingState + PriceSeries → ValueCalculator → HoldingValuation
    Rolling HoldingState per date → ValuationReconstructor → ValuationSeries
    Per-account ledgers → AccountAggregator → AccountTotals
"""

from wealthdesk.services.valuation.accounts import (
    ALL_ACCOUNTS,
    UNASSIGNED_ACCOUNT,
    AccountAggregator,
)
from wealthdesk.services.valuation.cache import PriceDataCache
from wealthdesk.services.valuation.calculators import PortfolioValuator, ValueCalculator
from wealthdesk.services.valuation.currency import CurrencyConverter, FxResolution
from wealthdesk.services.valuation.history_calculator import ValuationReconstructor
from wealthdesk.services.valuation.ledger import CostBasisLedger
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.repository import LedgerRepository
from wealthdesk.services.valuation.reporting import (
    AnomalyReporter,
    CollectingAnomalyReporter,
    LoggingAnomalyReporter,
    NullAnomalyReporter,
)
# Main service
from wealthdesk.services.valuation.service import ValuationService
from wealthdesk.services.valuation.types import (
    Account,
    AccountTotals,
    Anomaly,
    AnomalyKind,
    CustomHolding,
    FxObservation,
    HistoryPoint,
    HoldingState,
    HoldingValuation,
    PortfolioValuation,
    PriceObservation,
    Transaction,
    ValuationSeries,
)

__all__ = [
    # Main service
    "ValuationService",

    # Engine
    "PriceSeries",
    "CostBasisLedger",
    "CurrencyConverter",
    "FxResolution",
    "ValueCalculator",
    "PortfolioValuator",
    "ValuationReconstructor",
    "AccountAggregator",
    "PriceDataCache",
    "LedgerRepository",
    "ALL_ACCOUNTS",
    "UNASSIGNED_ACCOUNT",

    # Reporters
    "AnomalyReporter",
    "CollectingAnomalyReporter",
    "LoggingAnomalyReporter",
    "NullAnomalyReporter",

    # Data types
    "Transaction",
    "PriceObservation",
    "FxObservation",
    "Account",
    "CustomHolding",
    "HoldingState",
    "HoldingValuation",
    "PortfolioValuation",
    "AccountTotals",
    "HistoryPoint",
    "ValuationSeries",
    "Anomaly",
    "AnomalyKind",
]
