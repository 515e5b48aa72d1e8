# wealthdesk/services/valuation/accounts.py
"""
Account-scoped aggregation.

Cost basis never pools across accounts: an instrument bought in two accounts
has two independent average-cost lineages. Every per-account figure comes from
filtering the ledger down to that account FIRST and replaying it on its own.
The "all" scope totals are therefore the sum of the per-account replays, not a
replay of the merged ledger.

Scope selection:
    None, ALL_ACCOUNTS or an empty selection  → every transaction
    {1, 3}                                    → transactions of accounts 1 and 3
    {UNASSIGNED_ACCOUNT}                      → transactions without an account
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from wealthdesk.models import SECURITIES_ACCOUNT_TYPES, AccountType
from wealthdesk.services.valuation.calculators import ValueCalculator
from wealthdesk.services.valuation.ledger import CostBasisLedger
from wealthdesk.services.valuation.price_series import PriceSeries
from wealthdesk.services.valuation.reporting import AnomalyReporter
from wealthdesk.services.valuation.types import (
    Account,
    AccountTotals,
    CustomHolding,
    Transaction,
)

logger = logging.getLogger(__name__)

ALL_ACCOUNTS = "all"
UNASSIGNED_ACCOUNT = "__unassigned__"

AccountSelection = Iterable[int | str] | str | None


def account_key(account_id: int | str | None) -> str:
    """Dict key used for an account id (UNASSIGNED_ACCOUNT for None)."""
    return UNASSIGNED_ACCOUNT if account_id is None else str(account_id)


def normalize_selection(account_ids: AccountSelection) -> frozenset[str] | None:
    """
    Normalize an account selection to a set of account keys.

    Returns None when the selection means "every account".
    """
    if account_ids is None:
        return None
    if isinstance(account_ids, str):
        account_ids = [account_ids]
    selected = frozenset(str(a) for a in account_ids)
    if not selected or ALL_ACCOUNTS in selected:
        return None
    return selected


def is_securities_account(account: Account) -> bool:
    try:
        return AccountType(str(account.account_type).upper()) in SECURITIES_ACCOUNT_TYPES
    except ValueError:
        return False


class AccountAggregator:
    """Filters the ledger by account and computes per-account totals."""

    def __init__(
            self,
            ledger: CostBasisLedger | None = None,
            value_calculator: ValueCalculator | None = None,
    ) -> None:
        self._ledger = ledger if ledger is not None else CostBasisLedger()
        self._value_calc = value_calculator if value_calculator is not None else ValueCalculator()

    # =========================================================================
    # FILTERING
    # =========================================================================

    @staticmethod
    def filter_by_accounts(
            transactions: Iterable[Transaction],
            account_ids: AccountSelection,
    ) -> list[Transaction]:
        """Keep the transactions of the selected accounts (input order preserved)."""
        selected = normalize_selection(account_ids)
        if selected is None:
            return list(transactions)
        return [t for t in transactions if account_key(t.account_id) in selected]

    # =========================================================================
    # TOTALS
    # =========================================================================

    def per_account_totals(
            self,
            transactions: Iterable[Transaction],
            accounts: Iterable[Account],
            price_series: PriceSeries,
            as_of: date | None = None,
            custom_holdings: Iterable[CustomHolding] = (),
            reporter: AnomalyReporter | None = None,
    ) -> dict[str, AccountTotals]:
        """
        Invested amount and market value of each account.

        Args:
            transactions: Full ledger (all accounts)
            accounts: Account metadata of the profile
            price_series: Carry-forward prices and FX
            as_of: Valuation date (default: today)
            custom_holdings: Manually valued positions
            reporter: Receives replay anomalies

        Returns:
            Totals keyed by account_key(). Every securities account is present
            even without transactions; the additional_amount of a securities
            account or of an account with transactions is added to its market
            value; transactions and custom holdings without an account are
            grouped under UNASSIGNED_ACCOUNT.
        """
        as_of = as_of or date.today()

        by_account: dict[str, list[Transaction]] = {}
        for txn in transactions:
            if txn.trade_date <= as_of:
                by_account.setdefault(account_key(txn.account_id), []).append(txn)

        result: dict[str, AccountTotals] = {}
        for account in accounts:
            if is_securities_account(account):
                result[account_key(account.id)] = AccountTotals()

        for key, account_txns in by_account.items():
            result[key] = self._replay_totals(account_txns, price_series, as_of, reporter)

        for holding in custom_holdings:
            totals = result.setdefault(account_key(holding.account_id), AccountTotals())
            totals.invested_amount += holding.principal
            totals.market_value += holding.current_value
            totals.holdings_count += 1

        for account in accounts:
            key = account_key(account.id)
            # Only accounts valued from the ledger carry their additional amount
            if key in result and (is_securities_account(account) or key in by_account):
                result[key].market_value += account.additional_amount

        return result

    @staticmethod
    def combine(totals: Iterable[AccountTotals]) -> AccountTotals:
        """Sum several accounts' totals into one."""
        combined = AccountTotals()
        for t in totals:
            combined.invested_amount += t.invested_amount
            combined.market_value += t.market_value
            combined.holdings_count += t.holdings_count
        return combined

    def _replay_totals(
            self,
            transactions: list[Transaction],
            price_series: PriceSeries,
            as_of: date,
            reporter: AnomalyReporter | None,
    ) -> AccountTotals:
        holdings = self._ledger.compute_holdings(transactions, reporter)
        totals = AccountTotals()
        for holding in holdings.values():
            valuation = self._value_calc.value(holding, as_of, price_series, reporter)
            totals.invested_amount += holding.total_invested
            totals.market_value += valuation.market_value
            totals.holdings_count += 1
        return totals
