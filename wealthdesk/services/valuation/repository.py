# wealthdesk/services/valuation/repository.py
"""
Read access to a profile's ledger and market data.

Maps ORM rows to the valuation engine's frozen value objects so the engine
never touches a Session. Every read is one query per table; the engine then
works purely in memory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from wealthdesk.models import (
    Account as AccountModel,
    CustomHolding as CustomHoldingModel,
    ExchangeRate,
    MarketData,
    PortfolioTransaction,
    Profile,
)
from wealthdesk.services.exceptions import ProfileNotFoundError
from wealthdesk.services.valuation.accounts import UNASSIGNED_ACCOUNT, normalize_selection
from wealthdesk.services.valuation.types import (
    Account,
    CustomHolding,
    FxObservation,
    PriceObservation,
    Transaction,
)

logger = logging.getLogger(__name__)


def to_transaction(row: PortfolioTransaction) -> Transaction:
    """Map a ledger row to the engine's Transaction (sequence = row id)."""
    return Transaction(
        id=row.id,
        sequence=row.id,
        account_id=row.account_id,
        ticker=row.ticker.upper(),
        name=row.name,
        instrument_class=row.instrument_class,
        transaction_type=row.transaction_type,
        quantity=row.quantity,
        unit_price=row.unit_price,
        currency=row.currency.upper(),
        trade_date=row.trade_date,
        fx_rate_at_trade=row.fx_rate_at_trade,
        fee=row.fee,
        memo=row.memo,
    )


class LedgerRepository:
    """Query helpers returning engine value objects."""

    def get_profile(self, db: Session, profile_id: int) -> Profile:
        """
        Raises:
            ProfileNotFoundError: If the profile does not exist
        """
        profile = db.get(Profile, profile_id)
        if profile is None:
            raise ProfileNotFoundError(profile_id)
        return profile

    def list_transaction_rows(
            self,
            db: Session,
            profile_id: int,
            account_ids: Iterable[int | str] | str | None = None,
    ) -> list[PortfolioTransaction]:
        """
        Ledger rows of a profile, optionally restricted to some accounts.

        Ordered by trade date, then row id (insertion order).
        """
        stmt = select(PortfolioTransaction).where(PortfolioTransaction.profile_id == profile_id)

        selected = normalize_selection(account_ids)
        if selected is not None:
            ids = [int(a) for a in selected if a.isdigit()]
            conditions = []
            if ids:
                conditions.append(PortfolioTransaction.account_id.in_(ids))
            if UNASSIGNED_ACCOUNT in selected:
                conditions.append(PortfolioTransaction.account_id.is_(None))
            if not conditions:
                return []
            stmt = stmt.where(or_(*conditions))

        stmt = stmt.order_by(PortfolioTransaction.trade_date, PortfolioTransaction.id)
        return list(db.scalars(stmt).all())

    def list_transactions(
            self,
            db: Session,
            profile_id: int,
            account_ids: Iterable[int | str] | str | None = None,
    ) -> list[Transaction]:
        """Ledger of a profile as engine value objects (sequence = row id)."""
        return [
            to_transaction(row)
            for row in self.list_transaction_rows(db, profile_id, account_ids)
        ]

    def list_accounts(self, db: Session, profile_id: int) -> list[Account]:
        rows = db.scalars(
            select(AccountModel)
            .where(AccountModel.profile_id == profile_id)
            .order_by(AccountModel.id)
        ).all()
        return [
            Account(
                id=row.id,
                name=row.name,
                account_type=row.account_type.value,
                broker_name=row.broker_name,
                additional_amount=row.additional_amount,
            )
            for row in rows
        ]

    def list_custom_holdings(self, db: Session, profile_id: int) -> list[CustomHolding]:
        rows = db.scalars(
            select(CustomHoldingModel)
            .where(CustomHoldingModel.profile_id == profile_id)
            .order_by(CustomHoldingModel.id)
        ).all()
        return [
            CustomHolding(
                id=row.id,
                account_id=row.account_id,
                name=row.name,
                principal=row.principal,
                current_value=row.current_value,
            )
            for row in rows
        ]

    def list_price_observations(
            self,
            db: Session,
            tickers: Iterable[str],
            start: date,
            end: date,
    ) -> list[PriceObservation]:
        """Close prices of the tickers within [start, end]."""
        tickers = sorted({t.upper() for t in tickers})
        if not tickers:
            return []

        rows = db.execute(
            select(MarketData.ticker, MarketData.date, MarketData.close_price)
            .where(
                and_(
                    MarketData.ticker.in_(tickers),
                    MarketData.date >= start,
                    MarketData.date <= end,
                )
            )
            .order_by(MarketData.ticker, MarketData.date)
        ).all()

        return [
            PriceObservation(ticker=ticker, date=on_date, close_price=close)
            for ticker, on_date, close in rows
        ]

    def list_fx_observations(
            self,
            db: Session,
            base_currency: str,
            quote_currency: str,
            start: date,
            end: date,
    ) -> list[FxObservation]:
        """Rates "1 base = rate quote" within [start, end]."""
        rows = db.execute(
            select(ExchangeRate.date, ExchangeRate.rate)
            .where(
                and_(
                    ExchangeRate.base_currency == base_currency.upper(),
                    ExchangeRate.quote_currency == quote_currency.upper(),
                    ExchangeRate.date >= start,
                    ExchangeRate.date <= end,
                )
            )
            .order_by(ExchangeRate.date)
        ).all()

        return [FxObservation(date=on_date, rate=rate) for on_date, rate in rows]
