# wealthdesk/services/transaction_service.py
"""
Transaction acceptance boundary for a profile's ledger.

The replay engine never rejects data: it reports oversells and keeps going.
Rejecting them is the job of this service, which is the only writer of the
ledger. Every write is checked by replaying the candidate ledger (the ledger
as it would look after the write) for the affected account through the same
CostBasisLedger the valuation uses:

    create  → candidate = ledger + new row
    update  → candidate = ledger with the row replaced (same id, same
              position among same-day trades)
    delete  → candidate = ledger - row (deleting a buy that a later sell
              depends on is rejected)

Foreign-currency trades are stored with their home-currency unit price:
    unit_price = trade_price × fx_rate_at_trade
using the broker rate when given, otherwise the stored rate on or before the
trade date (or the configured default rate).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from wealthdesk.config import settings
from wealthdesk.models import Account as AccountModel, PortfolioTransaction
from wealthdesk.schemas.transactions import TransactionCreate, TransactionUpdate
from wealthdesk.services.exceptions import (
    AccountNotFoundError,
    OversellError,
    TransactionNotFoundError,
    UnsupportedCurrencyError,
)
from wealthdesk.services.valuation.repository import LedgerRepository
from wealthdesk.services.valuation.accounts import account_key
from wealthdesk.services.valuation.cache import PriceDataCache, profile_scope
from wealthdesk.services.valuation.currency import CurrencyConverter
from wealthdesk.services.valuation.ledger import CostBasisLedger
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import (
    CollectingAnomalyReporter,
    NullAnomalyReporter,
)
from wealthdesk.services.valuation.types import AnomalyKind, Transaction

logger = logging.getLogger(__name__)

_REJECTED_KINDS = (AnomalyKind.OVERSELL, AnomalyKind.SELL_WITHOUT_POSITION)


class TransactionService:
    """
    CRUD for ledger transactions with oversell protection.

    Attributes:
        _repository: Ledger reads
        _converter: Home-price conversion of foreign trades
        _price_cache: Invalidated for the profile after every write
        _ledger: Replay used to validate candidate ledgers
    """

    def __init__(
            self,
            repository: LedgerRepository | None = None,
            converter: CurrencyConverter | None = None,
            price_cache: PriceDataCache | None = None,
    ) -> None:
        self._repository = repository if repository is not None else LedgerRepository()
        self._converter = converter if converter is not None else CurrencyConverter()
        self._price_cache = price_cache
        self._ledger = CostBasisLedger(NullAnomalyReporter())

    # =========================================================================
    # READS
    # =========================================================================

    def list(
            self,
            db: Session,
            profile_id: int,
            account_ids: Iterable[int | str] | str | None = None,
    ) -> list[PortfolioTransaction]:
        """Transactions of a profile ordered by trade date, then id."""
        self._repository.get_profile(db, profile_id)
        return self._repository.list_transaction_rows(db, profile_id, account_ids)

    def get(self, db: Session, profile_id: int, transaction_id: int) -> PortfolioTransaction:
        """
        Raises:
            ProfileNotFoundError: If the profile doesn't exist
            TransactionNotFoundError: If the transaction doesn't belong to the profile
        """
        self._repository.get_profile(db, profile_id)
        row = db.get(PortfolioTransaction, transaction_id)
        if row is None or row.profile_id != profile_id:
            raise TransactionNotFoundError(transaction_id)
        return row

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(
            self,
            db: Session,
            profile_id: int,
            data: TransactionCreate,
    ) -> PortfolioTransaction:
        """
        Record a trade.

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
            AccountNotFoundError: If account_id is not one of the profile's accounts
            UnsupportedCurrencyError: If the currency is neither home nor foreign
            OversellError: If the sell exceeds the quantity held at that point
        """
        self._repository.get_profile(db, profile_id)
        self._validate_account(db, profile_id, data.account_id)
        fx_rate, unit_price = self._home_unit_price(db, data)

        ledger = self._repository.list_transactions(db, profile_id)
        next_sequence = max((t.sequence for t in ledger), default=0) + 1
        candidate = self._to_candidate(data, next_sequence, next_sequence, unit_price, fx_rate)

        self._ensure_no_oversell(
            ledger + [candidate],
            accounts={account_key(candidate.account_id)},
            tickers={candidate.ticker},
        )

        row = PortfolioTransaction(profile_id=profile_id)
        self._apply_fields(row, data, fx_rate, unit_price)
        db.add(row)
        db.commit()
        db.refresh(row)

        self._invalidate(profile_id)
        logger.info(
            f"Recorded {row.transaction_type.value} {row.quantity} {row.ticker} "
            f"for profile {profile_id} (id={row.id})"
        )
        return row

    def update(
            self,
            db: Session,
            profile_id: int,
            transaction_id: int,
            data: TransactionUpdate,
    ) -> PortfolioTransaction:
        """
        Replace a trade. The row keeps its id and thus its same-day position.

        Raises:
            TransactionNotFoundError: If the transaction doesn't belong to the profile
            AccountNotFoundError / UnsupportedCurrencyError / OversellError: As for create
        """
        row = self.get(db, profile_id, transaction_id)
        self._validate_account(db, profile_id, data.account_id)
        fx_rate, unit_price = self._home_unit_price(db, data)

        ledger = self._repository.list_transactions(db, profile_id)
        old = next(t for t in ledger if t.id == row.id)
        candidate = self._to_candidate(data, row.id, row.id, unit_price, fx_rate)

        self._ensure_no_oversell(
            [t for t in ledger if t.id != row.id] + [candidate],
            accounts={account_key(old.account_id), account_key(candidate.account_id)},
            tickers={old.ticker, candidate.ticker},
        )

        self._apply_fields(row, data, fx_rate, unit_price)
        db.commit()
        db.refresh(row)

        self._invalidate(profile_id)
        logger.info(f"Updated transaction {row.id} of profile {profile_id}")
        return row

    def delete(self, db: Session, profile_id: int, transaction_id: int) -> None:
        """
        Remove a trade.

        Raises:
            TransactionNotFoundError: If the transaction doesn't belong to the profile
            OversellError: If a later sell depends on the removed buy
        """
        row = self.get(db, profile_id, transaction_id)

        ledger = self._repository.list_transactions(db, profile_id)
        old = next(t for t in ledger if t.id == row.id)

        self._ensure_no_oversell(
            [t for t in ledger if t.id != row.id],
            accounts={account_key(old.account_id)},
            tickers={old.ticker},
        )

        db.delete(row)
        db.commit()

        self._invalidate(profile_id)
        logger.info(f"Deleted transaction {transaction_id} of profile {profile_id}")

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _validate_account(self, db: Session, profile_id: int, account_id: int | None) -> None:
        if account_id is None:
            return
        account = db.get(AccountModel, account_id)
        if account is None or account.profile_id != profile_id:
            raise AccountNotFoundError(account_id, profile_id)

    def _home_unit_price(
            self,
            db: Session,
            data: TransactionCreate,
    ) -> tuple[Decimal, Decimal]:
        """
        (fx_rate_at_trade, home unit price) of an entered trade.

        Raises:
            UnsupportedCurrencyError: If the currency is neither home nor foreign
        """
        if not self._converter.recognizes(data.currency):
            raise UnsupportedCurrencyError(data.currency, self._converter.supported_currencies)

        if self._converter.is_home(data.currency):
            return Decimal("1"), data.trade_price

        fx_rate = data.fx_rate_at_trade
        if fx_rate is None:
            foreign, home = self._converter.foreign_currency, self._converter.home_currency
            observations = self._repository.list_fx_observations(
                db,
                foreign,
                home,
                data.trade_date - timedelta(days=settings.price_lookback_days),
                data.trade_date,
            )
            fx_rate = self._converter.resolve_rate(
                data.trade_date,
                PriceSeries.from_observations(fx_rates=observations),
            ).rate

        unit_price = self._converter.round_home(
            self._converter.convert_with_rate(data.trade_price, fx_rate)
        )
        return fx_rate, unit_price

    @staticmethod
    def _to_candidate(
            data: TransactionCreate,
            txn_id: int,
            sequence: int,
            unit_price: Decimal,
            fx_rate: Decimal,
    ) -> Transaction:
        return Transaction(
            id=txn_id,
            sequence=sequence,
            account_id=data.account_id,
            ticker=data.ticker,
            name=data.name,
            instrument_class=data.instrument_class,
            transaction_type=data.transaction_type,
            quantity=data.quantity,
            unit_price=unit_price,
            currency=data.currency,
            trade_date=data.trade_date,
            fx_rate_at_trade=fx_rate,
            fee=data.fee,
            memo=data.memo,
        )

    def _ensure_no_oversell(
            self,
            candidate: list[Transaction],
            accounts: set[str],
            tickers: set[str],
    ) -> None:
        """
        Replay each affected account's candidate ledger.

        Raises:
            OversellError: On the first sell of a touched ticker that exceeds
                the quantity held at that point
        """
        for key in sorted(accounts):
            scoped = [
                t for t in candidate
                if account_key(t.account_id) == key and t.ticker.upper() in tickers
            ]
            collector = CollectingAnomalyReporter()
            self._ledger.compute_holdings(scoped, collector)

            for anomaly in collector.anomalies:
                if anomaly.kind in _REJECTED_KINDS:
                    logger.info(f"Rejected ledger write: {anomaly.message}")
                    raise OversellError(
                        ticker=anomaly.ticker,
                        trade_date=anomaly.trade_date,
                        requested=anomaly.quantity,
                        available=max(anomaly.available, Decimal("0")),
                    )

    @staticmethod
    def _apply_fields(
            row: PortfolioTransaction,
            data: TransactionCreate,
            fx_rate: Decimal,
            unit_price: Decimal,
    ) -> None:
        row.account_id = data.account_id
        row.transaction_type = data.transaction_type
        row.instrument_class = data.instrument_class
        row.ticker = data.ticker
        row.name = data.name
        row.quantity = data.quantity
        row.trade_price = data.trade_price
        row.currency = data.currency
        row.fx_rate_at_trade = fx_rate
        row.unit_price = unit_price
        row.fee = data.fee
        row.trade_date = data.trade_date
        row.memo = data.memo

    def _invalidate(self, profile_id: int) -> None:
        if self._price_cache is not None:
            self._price_cache.invalidate(profile_scope(profile_id))
