"""Monthly ledger: one aggregated row per period, derived from a snapshot.

The ledger is the single source of truth for every downstream view (savings
rate, trends, health score). It is recomputed from a
:class:`~household_ledger.models.LedgerSnapshot` whenever inputs change and is
never stored.

Per period P:

- transactions are the merged month view (real plus surviving virtual
  transactions), each with its kind resolved;
- ``total_income`` comes from the income history entry in force for P;
- ``total_expenses`` is the magnitude of all expense-kind amounts (transfers
  excluded) plus every debt's monthly repayment;
- ``net_savings = total_income - total_expenses``.

Data problems never raise here: junk amounts are already ``0.0`` and records
without period information simply do not appear in any period.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from .classification import classify_all
from .income import total_income_for
from .logging_setup import get_logger
from .merge import get_merged_transactions
from .models import AMEX_SOURCES, TRANSFERS_CATEGORY, LedgerRow, LedgerSnapshot, Transaction
from .periods import PeriodKey, current_month, get_period_key, is_period_key
from .recurring import recurring_spend

_logger = get_logger("household_ledger.ledger")

# Mismatches at or below this many currency units are rounding noise.
CONSISTENCY_TOLERANCE = 1.0


def _is_transfer(tx: Transaction) -> bool:
    return tx.kind == "transfer" or tx.category == TRANSFERS_CATEGORY


def _counts_as_expense(tx: Transaction) -> bool:
    return tx.kind == "expense" and not _is_transfer(tx)


def _signed_sum(
    transactions: Iterable[Transaction], predicate: Callable[[Transaction], bool]
) -> float:
    return sum((tx.amount for tx in transactions if predicate(tx)), 0.0)


def _is_amex(tx: Transaction) -> bool:
    return tx.source in AMEX_SOURCES


def candidate_periods(snapshot: LedgerSnapshot, *, today: date | None = None) -> list[PeriodKey]:
    """Every period the ledger should have a row for, ascending.

    Sources: each transaction's period, each income entry's period, each
    active rule's start month (the current month when unset), and the active
    period whenever it falls inside an active rule's bounds.
    """

    periods: set[PeriodKey] = set()
    for tx in snapshot.transactions:
        p = get_period_key(tx)
        if p:
            periods.add(p)
    for entry in snapshot.income_history:
        if entry.period_key:
            periods.add(entry.period_key)

    active = snapshot.active_period_key
    fallback_start = current_month(today)
    for rule in snapshot.recurring_expenses:
        if not rule.active:
            continue
        start = rule.start_month or fallback_start
        periods.add(start)
        if active and active >= start and (not rule.end_month or active <= rule.end_month):
            periods.add(active)

    valid = {p for p in periods if is_period_key(p)}
    if len(valid) != len(periods):
        _logger.debug("ignoring malformed periods: %s", sorted(periods - valid))
    return sorted(valid)


def build_ledger_row(snapshot: LedgerSnapshot, period_key: PeriodKey) -> LedgerRow:
    """Aggregate one period of ``snapshot``."""

    rules = snapshot.recurring_expenses
    merged = classify_all(get_merged_transactions(period_key, snapshot.transactions, rules))

    total_income = total_income_for(period_key, snapshot.income_history, snapshot.income)
    debt_payments = sum((d.monthly_repayment for d in snapshot.debts), 0.0)
    expense_sum = _signed_sum(merged, _counts_as_expense)
    total_expenses = abs(expense_sum) + debt_payments
    net_savings = total_income - total_expenses
    savings_rate = (net_savings / total_income) * 100 if total_income > 0 else 0.0

    row = LedgerRow(
        month_key=period_key,
        total_income=total_income,
        total_expenses=total_expenses,
        recurring_spend=recurring_spend(rules, period_key),
        debt_payments=debt_payments,
        net_savings=net_savings,
        savings_rate=savings_rate,
        transaction_count=len(merged),
        amex_gross_spend=_signed_sum(merged, lambda t: _is_amex(t) and t.kind == "expense"),
        amex_refunds=_signed_sum(merged, lambda t: _is_amex(t) and t.kind == "refund"),
        amex_net_spend=_signed_sum(
            merged, lambda t: _is_amex(t) and t.kind in ("expense", "payment")
        ),
        payments_to_card=_signed_sum(merged, lambda t: t.kind == "payment"),
        transfers=_signed_sum(merged, lambda t: t.kind == "transfer"),
        amex_income=_signed_sum(merged, lambda t: t.kind == "income"),
    )
    _logger.debug(
        "%s: %d txns, income=%.2f expenses=%.2f net=%.2f",
        period_key,
        row.transaction_count,
        row.total_income,
        row.total_expenses,
        row.net_savings,
    )
    return row


def build_ledger(snapshot: LedgerSnapshot, *, today: date | None = None) -> list[LedgerRow]:
    """Build the full ledger for ``snapshot``, one row per period, ascending."""

    if not isinstance(snapshot, LedgerSnapshot):
        raise TypeError(
            f"build_ledger expects a LedgerSnapshot, got {type(snapshot).__name__}"
        )
    return [build_ledger_row(snapshot, p) for p in candidate_periods(snapshot, today=today)]


def ledger_row_for(ledger: Sequence[LedgerRow], period_key: PeriodKey) -> LedgerRow:
    """Return the row for ``period_key`` or an all-zero row when absent."""

    for row in ledger:
        if row.month_key == period_key:
            return row
    return LedgerRow(month_key=period_key)


# ---------------------------------------------------------------------------
# Consistency check
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConsistencyReport:
    period_key: PeriodKey
    calculated_spending: float
    ledger_expenses: float
    delta: float
    has_mismatch: bool


def spending_transactions(
    merged: Iterable[Transaction], *, include_transfers: bool = False
) -> list[Transaction]:
    """Expense-kind transactions of a merged month, transfers optional."""

    out: list[Transaction] = []
    for tx in classify_all(merged):
        if tx.category == TRANSFERS_CATEGORY and not include_transfers:
            continue
        if tx.kind == "expense":
            out.append(tx)
    return out


def check_consistency(
    row: LedgerRow,
    merged: Iterable[Transaction],
    *,
    tolerance: float = CONSISTENCY_TOLERANCE,
) -> ConsistencyReport:
    """Re-derive a period's spending independently and compare with ``row``.

    The independent total is the sum of absolute expense amounts in the
    merged month plus the row's debt payments. A delta above ``tolerance``
    usually means a sign error or a duplicate slipped through and is logged
    for human review.
    """

    spending = sum((abs(tx.amount) for tx in spending_transactions(merged)), 0.0)
    calculated = spending + row.debt_payments
    delta = abs(calculated - row.total_expenses)
    report = ConsistencyReport(
        period_key=row.month_key,
        calculated_spending=calculated,
        ledger_expenses=row.total_expenses,
        delta=delta,
        has_mismatch=delta > tolerance,
    )
    if report.has_mismatch:
        _logger.warning(
            "%s: transaction spending %.2f differs from ledger expenses %.2f by %.2f",
            row.month_key,
            calculated,
            row.total_expenses,
            delta,
        )
    return report


__all__ = [
    "CONSISTENCY_TOLERANCE",
    "ConsistencyReport",
    "build_ledger",
    "build_ledger_row",
    "candidate_periods",
    "check_consistency",
    "ledger_row_for",
    "spending_transactions",
]
