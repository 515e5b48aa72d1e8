# wealthdesk/routers/portfolio.py
"""
Portfolio valuation endpoints.

- GET /profiles/{id}/portfolio/holdings - Open holdings with cost basis and value
- GET /profiles/{id}/portfolio/history - Invested / market value series for charts
- GET /profiles/{id}/portfolio/accounts - Per-account totals plus the "all" scope

`account_id` may be repeated to select several accounts; omitting it (or
passing "all") selects the whole profile. "__unassigned__" selects trades
without an account.

Amounts are rounded to the home currency's smallest unit here, at the
response boundary; the engine works unrounded.
"""

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from wealthdesk.database import get_db
from wealthdesk.dependencies import get_ledger_repository, get_valuation_service
from wealthdesk.schemas.valuation import (
    AccountTotalsListResponse,
    AccountTotalsResponse,
    AnomalyResponse,
    HistoryPointResponse,
    HistoryResponse,
    HoldingResponse,
    HoldingsResponse,
)
from wealthdesk.services.valuation import (
    ALL_ACCOUNTS,
    AccountAggregator,
    LedgerRepository,
    ValuationService,
)
from wealthdesk.services.valuation.accounts import account_key, normalize_selection
from wealthdesk.services.valuation.currency import CurrencyConverter

PERCENT_QUANTUM = Decimal("0.01")

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/profiles",
    tags=["Portfolio"],
)


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def _selection(account_ids: list[str] | None) -> list[str] | None:
    selected = normalize_selection(account_ids)
    return sorted(selected) if selected is not None else None


def _percent(value: Decimal | None) -> Decimal | None:
    return value.quantize(PERCENT_QUANTUM) if value is not None else None


def _map_anomaly(anomaly) -> AnomalyResponse:
    return AnomalyResponse(
        kind=anomaly.kind.value,
        message=anomaly.message,
        ticker=anomaly.ticker,
        trade_date=anomaly.trade_date,
        account_id=anomaly.account_id,
        transaction_id=anomaly.transaction_id,
    )


def _map_holding(valuation, converter: CurrencyConverter) -> HoldingResponse:
    holding = valuation.holding
    return HoldingResponse(
        ticker=holding.ticker,
        name=holding.name,
        instrument_class=holding.instrument_class.value,
        currency=holding.currency,
        quantity=holding.quantity,
        average_unit_price=holding.average_unit_price,
        total_invested=converter.round_home(holding.total_invested),
        fees_paid=converter.round_home(holding.fees_paid),
        price=valuation.price,
        price_date=valuation.price_date,
        fx_rate=valuation.fx_rate,
        market_value=converter.round_home(valuation.market_value),
        profit_loss=converter.round_home(valuation.profit_loss),
        profit_rate=_percent(valuation.profit_rate),
        price_source=valuation.price_source,
    )


def _map_totals(key: str, totals, account, converter: CurrencyConverter) -> AccountTotalsResponse:
    return AccountTotalsResponse(
        account_id=key,
        name=account.name if account else None,
        account_type=account.account_type if account else None,
        broker_name=account.broker_name if account else None,
        invested_amount=converter.round_home(totals.invested_amount),
        market_value=converter.round_home(totals.market_value),
        profit_loss=converter.round_home(totals.profit_loss),
        holdings_count=totals.holdings_count,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/{profile_id}/portfolio/holdings",
    response_model=HoldingsResponse,
    summary="Get open holdings",
)
def get_holdings(
        profile_id: int,
        account_id: list[str] | None = Query(
            default=None,
            description="Account ids to include (repeatable; default: all)"
        ),
        as_of: date | None = Query(
            default=None,
            description="Valuation date (default: today)"
        ),
        db: Session = Depends(get_db),
        service: ValuationService = Depends(get_valuation_service),
) -> HoldingsResponse:
    """
    Holdings of the selected accounts with average cost, remaining cost
    basis and market value.

    Cost basis is pooled across the selected accounts. Holdings without any
    price on or before the date are valued at cost (`price_source` =
    `cost_carry`) and flip `has_complete_data` to false.
    """
    valuation = service.get_holdings(db, profile_id, account_ids=account_id, as_of=as_of)
    converter = service.converter

    return HoldingsResponse(
        profile_id=profile_id,
        valuation_date=valuation.valuation_date,
        home_currency=valuation.home_currency,
        account_ids=_selection(account_id),
        holdings=[_map_holding(h, converter) for h in valuation.holdings],
        total_invested=converter.round_home(valuation.total_invested),
        total_market_value=converter.round_home(valuation.total_market_value),
        total_profit_loss=converter.round_home(valuation.total_profit_loss),
        profit_rate=_percent(valuation.profit_rate),
        has_complete_data=valuation.has_complete_data,
        anomalies=[_map_anomaly(a) for a in valuation.anomalies],
    )


@router.get(
    "/{profile_id}/portfolio/history",
    response_model=HistoryResponse,
    summary="Get valuation history",
)
def get_history(
        profile_id: int,
        from_date: date | None = Query(
            default=None,
            description="Start date (default: first trade)"
        ),
        to_date: date | None = Query(
            default=None,
            description="End date (default: today)"
        ),
        account_id: list[str] | None = Query(
            default=None,
            description="Account ids to include (repeatable; default: all)"
        ),
        calendar: str = Query(
            default="trading",
            description="trading, daily, weekly or monthly"
        ),
        db: Session = Depends(get_db),
        service: ValuationService = Depends(get_valuation_service),
) -> HistoryResponse:
    """
    Invested amount and market value per date.

    **Calendars:**
    - `trading`: every date with a price for a traded instrument, plus the
      trade dates and the end date
    - `daily`: every calendar day
    - `weekly`: Fridays, plus the end date
    - `monthly`: month-ends, plus the end date

    Invalid calendars, reversed ranges and ranges longer than the configured
    maximum are rejected with **400**.
    """
    series = service.get_history(
        db,
        profile_id,
        start_date=from_date,
        end_date=to_date,
        account_ids=account_id,
        calendar=calendar,
    )
    converter = service.converter

    return HistoryResponse(
        profile_id=profile_id,
        home_currency=converter.home_currency,
        calendar=calendar,
        from_date=series.dates[0] if series.dates else from_date,
        to_date=series.dates[-1] if series.dates else to_date,
        account_ids=_selection(account_id),
        points=[
            HistoryPointResponse(
                date=p.date,
                invested=converter.round_home(p.invested),
                market_value=converter.round_home(p.market_value),
                profit_loss=converter.round_home(p.profit_loss),
                unpriced_count=p.unpriced_count,
            )
            for p in series.points
        ],
        anomalies=[_map_anomaly(a) for a in series.anomalies],
    )


@router.get(
    "/{profile_id}/portfolio/accounts",
    response_model=AccountTotalsListResponse,
    summary="Get per-account totals",
)
def get_account_totals(
        profile_id: int,
        as_of: date | None = Query(
            default=None,
            description="Valuation date (default: today)"
        ),
        db: Session = Depends(get_db),
        service: ValuationService = Depends(get_valuation_service),
        repository: LedgerRepository = Depends(get_ledger_repository),
) -> AccountTotalsListResponse:
    """
    Invested amount and market value of every account.

    Each account's cost basis is replayed on its own; the `total` row is the
    sum of the accounts, so it never blends cost basis across accounts.
    Securities accounts are listed even when empty.
    """
    as_of = as_of or date.today()
    per_account = service.get_account_totals(db, profile_id, as_of=as_of)
    accounts = {account_key(a.id): a for a in repository.list_accounts(db, profile_id)}
    converter = service.converter

    return AccountTotalsListResponse(
        profile_id=profile_id,
        valuation_date=as_of,
        home_currency=converter.home_currency,
        accounts=[
            _map_totals(key, totals, accounts.get(key), converter)
            for key, totals in per_account.items()
        ],
        total=_map_totals(
            ALL_ACCOUNTS,
            AccountAggregator.combine(per_account.values()),
            None,
            converter,
        ),
    )
