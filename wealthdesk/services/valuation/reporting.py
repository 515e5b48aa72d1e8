# wealthdesk/services/valuation/reporting.py
"""
Anomaly reporters injected into the replay engine.

The ledger replay never rejects or clamps human-entered data; it reports
what it saw and keeps the arithmetic result. Callers pick the reporter:

- LoggingAnomalyReporter: log a warning per anomaly (default)
- CollectingAnomalyReporter: keep anomalies for the response, optionally
  forwarding them (e.g. to the logging reporter)
- NullAnomalyReporter: ignore anomalies
"""

from __future__ import annotations

import logging
from typing import Protocol

from wealthdesk.services.valuation.types import Anomaly, AnomalyKind

logger = logging.getLogger(__name__)


class AnomalyReporter(Protocol):
    """Anything that accepts anomalies raised during a replay."""

    def report(self, anomaly: Anomaly) -> None:
        ...


class LoggingAnomalyReporter:
    """Logs every anomaly at WARNING level with structured context."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def report(self, anomaly: Anomaly) -> None:
        self._log.warning(
            anomaly.message,
            extra={
                "anomaly": anomaly.kind.value,
                "ticker": anomaly.ticker,
                "trade_date": anomaly.trade_date.isoformat() if anomaly.trade_date else None,
                "account_id": anomaly.account_id,
            },
        )


class CollectingAnomalyReporter:
    """
    Collects anomalies in memory.

    Duplicate anomalies (same kind, ticker, date, transaction) are kept once.
    FX_FALLBACK is kept once per collector whatever the date, so a chart over
    a range with no FX data reports (and logs) the first fallback only.
    """

    def __init__(self, forward_to: AnomalyReporter | None = None) -> None:
        self._forward_to = forward_to
        self._anomalies: list[Anomaly] = []
        self._seen: set[tuple] = set()

    def report(self, anomaly: Anomaly) -> None:
        if anomaly.kind == AnomalyKind.FX_FALLBACK:
            key: tuple = (anomaly.kind,)
        else:
            key = (anomaly.kind, anomaly.ticker, anomaly.trade_date, anomaly.transaction_id)
        if key in self._seen:
            return
        self._seen.add(key)
        self._anomalies.append(anomaly)
        if self._forward_to is not None:
            self._forward_to.report(anomaly)

    @property
    def anomalies(self) -> list[Anomaly]:
        return list(self._anomalies)

    def __len__(self) -> int:
        return len(self._anomalies)


class NullAnomalyReporter:
    def report(self, anomaly: Anomaly) -> None:
        return None
