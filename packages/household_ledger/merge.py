"""Per-month transaction view: real transactions plus surviving virtuals.

:func:`get_merged_transactions` is the canonical "what happened this month"
list used by the ledger and by every consumer. Real transactions for the
month are kept as-is (tagged ``source="amex"`` when they carry no source);
virtual transactions expanded from recurring rules are dropped when a real
transaction already covers them (see
:func:`household_ledger.duplicates.is_duplicate`).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .duplicates import is_duplicate
from .logging_setup import get_logger
from .models import RecurringExpenseRule, Transaction
from .periods import PeriodKey, get_period_key, month_range
from .recurring import expand_recurring_for_month

_logger = get_logger("household_ledger.merge")

DEFAULT_SOURCE = "amex"


def _as_real(tx: Transaction) -> Transaction:
    updates: dict[str, object] = {}
    if not tx.source:
        updates["source"] = DEFAULT_SOURCE
    if tx.is_virtual:
        updates["is_virtual"] = False
    return tx.model_copy(update=updates) if updates else tx


def real_transactions_for_month(
    period_key: PeriodKey, transactions: Iterable[Transaction]
) -> list[Transaction]:
    return [_as_real(tx) for tx in transactions if get_period_key(tx) == period_key]


def get_merged_transactions(
    period_key: PeriodKey,
    transactions: Iterable[Transaction],
    rules: Iterable[RecurringExpenseRule] | None,
) -> list[Transaction]:
    """Return the deduplicated, date-descending transaction list for a month."""

    real = real_transactions_for_month(period_key, transactions)
    kept: list[Transaction] = []
    for virtual in expand_recurring_for_month(period_key, rules):
        match = next((r for r in real if is_duplicate(r, virtual)), None)
        if match is not None:
            _logger.debug(
                "%s: virtual %r covered by real %r", period_key, virtual.id, match.id
            )
            continue
        kept.append(virtual)

    # sorted() is stable, so equal dates keep real-before-virtual order.
    return sorted([*real, *kept], key=lambda t: t.date or "", reverse=True)


def get_merged_transactions_for_range(
    start: PeriodKey,
    end: PeriodKey,
    transactions: Sequence[Transaction],
    rules: Sequence[RecurringExpenseRule] | None,
) -> list[Transaction]:
    """Concatenate merged months from ``start`` to ``end`` inclusive."""

    out: list[Transaction] = []
    for month in month_range(start, end):
        out.extend(get_merged_transactions(month, transactions, rules))
    return out


def find_transaction(merged: Iterable[Transaction], tx_id: str) -> Transaction | None:
    """Look a transaction up by id in an already-merged list.

    Callers resolve virtual transactions this way and read ``base_id``/
    ``period_key`` from the object rather than splitting the composite id.
    """

    return next((tx for tx in merged if tx.id == tx_id), None)


__all__ = [
    "DEFAULT_SOURCE",
    "find_transaction",
    "get_merged_transactions",
    "get_merged_transactions_for_range",
    "real_transactions_for_month",
]
