# wealthdesk/services/valuation/ledger.py
"""
Cost-basis replay of a transaction ledger.

Average-cost accounting, one running state per instrument:

    BUY:   quantity += q
           total_invested += q × unit_price
           average_unit_price = total_invested / quantity

    SELL:  sell_ratio = q / quantity_before
           quantity -= q
           total_invested *= (1 - sell_ratio)
           average_unit_price unchanged

Reducing the cost basis proportionally (instead of by q × average) keeps
total_invested == quantity × average_unit_price without separate
realized-gain bookkeeping.

Ordering:
    Transactions are replayed by (trade_date, sequence, id). The sequence is
    the insertion order of the ledger row, so two trades on the same day are
    always replayed in the order they were recorded, regardless of the order
    the caller passes them in. Reordering same-day sequences CAN change the
    result (a same-day sell before its buy is an oversell).

Data integrity:
    A sell larger than the held quantity is NOT clamped. The replay reports
    an anomaly and keeps the arithmetic result (a negative quantity), so a
    dashboard over human-entered data degrades instead of crashing.
    Rejecting such a sell is the job of the transaction-acceptance boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal

from wealthdesk.services.valuation.reporting import AnomalyReporter, LoggingAnomalyReporter
from wealthdesk.services.valuation.types import (
    ZERO,
    Anomaly,
    AnomalyKind,
    HoldingState,
    Transaction,
)

logger = logging.getLogger(__name__)


def transaction_sort_key(txn: Transaction) -> tuple:
    """Deterministic replay order: trade date, then insertion sequence, then id."""
    return txn.trade_date, txn.sequence, str(txn.id)


class CostBasisLedger:
    """
    Replays transactions into per-instrument HoldingState.

    Stateless between calls: each call receives its transactions and returns
    fresh state, so one instance can serve concurrent requests.
    """

    def __init__(self, reporter: AnomalyReporter | None = None) -> None:
        self._reporter = reporter if reporter is not None else LoggingAnomalyReporter()

    def _reporter_for(self, reporter: AnomalyReporter | None) -> AnomalyReporter:
        return reporter if reporter is not None else self._reporter

    @staticmethod
    def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
        return sorted(transactions, key=transaction_sort_key)

    def compute_holdings(
            self,
            transactions: Iterable[Transaction],
            reporter: AnomalyReporter | None = None,
    ) -> dict[str, HoldingState]:
        """
        Current holdings of a ledger.

        Args:
            transactions: Ledger rows in any order
            reporter: Overrides the ledger's reporter for this call

        Returns:
            Holdings keyed by ticker, excluding instruments whose final
            quantity is ≤ 0 (fully exited or oversold). Empty input gives
            an empty dict.
        """
        state: dict[str, HoldingState] = {}
        for txn in self.sort_transactions(transactions):
            self.apply(state, txn, reporter)
        return self.open_positions(state)

    def apply(
            self,
            state: dict[str, HoldingState],
            txn: Transaction,
            reporter: AnomalyReporter | None = None,
    ) -> None:
        """
        Apply a single transaction to the running state (mutates state).

        Used directly by the history reconstruction, which advances one
        rolling state through the sorted ledger instead of replaying it
        from scratch for every date.
        """
        ticker = txn.ticker.upper()
        holding = state.get(ticker)
        if holding is None:
            holding = HoldingState(
                ticker=ticker,
                name=txn.name,
                instrument_class=txn.instrument_class,
                currency=txn.currency.upper(),
            )
            state[ticker] = holding

        holding.fees_paid += txn.fee

        if txn.is_buy:
            holding.quantity += txn.quantity
            holding.total_invested += txn.gross_amount
            if holding.quantity > ZERO:
                holding.average_unit_price = holding.total_invested / holding.quantity
            return

        pre_quantity = holding.quantity

        if pre_quantity <= ZERO:
            # Nothing held: no cost basis to release
            self._reporter_for(reporter).report(Anomaly(
                kind=AnomalyKind.SELL_WITHOUT_POSITION,
                message=(
                    f"Sell of {txn.quantity} {ticker} on {txn.trade_date} "
                    f"with no position held ({pre_quantity})"
                ),
                ticker=ticker,
                trade_date=txn.trade_date,
                account_id=txn.account_id,
                transaction_id=txn.id,
                quantity=txn.quantity,
                available=pre_quantity,
            ))
            holding.quantity = pre_quantity - txn.quantity
            return

        if txn.quantity > pre_quantity:
            self._reporter_for(reporter).report(Anomaly(
                kind=AnomalyKind.OVERSELL,
                message=(
                    f"Sell of {txn.quantity} {ticker} on {txn.trade_date} "
                    f"exceeds held quantity {pre_quantity}"
                ),
                ticker=ticker,
                trade_date=txn.trade_date,
                account_id=txn.account_id,
                transaction_id=txn.id,
                quantity=txn.quantity,
                available=pre_quantity,
            ))

        sell_ratio = txn.quantity / pre_quantity
        holding.quantity = pre_quantity - txn.quantity
        holding.total_invested *= (Decimal("1") - sell_ratio)

        if holding.quantity == ZERO:
            holding.total_invested = ZERO

    @staticmethod
    def open_positions(state: dict[str, HoldingState]) -> dict[str, HoldingState]:
        """Snapshot copies of the positions with quantity > 0."""
        return {
            ticker: holding.copy()
            for ticker, holding in state.items()
            if holding.is_open
        }
