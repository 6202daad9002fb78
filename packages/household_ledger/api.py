"""Consumer-facing API over a :class:`~household_ledger.models.LedgerSnapshot`.

The module-level functions are thin, stateless entry points. They take the
snapshot explicitly so callers never depend on ambient state.

:class:`HouseholdLedger` wraps one snapshot and memoizes the derived views
(merged month lists and the ledger) for its lifetime. Snapshots are
immutable, so every edit returns a new ``HouseholdLedger`` with empty caches.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from . import categorization, ledger, merge, recurring
from . import income as income_mod
from .ingest.amex_csv import ImportedRecord
from .ingest.importer import ImportResult, import_transactions
from .models import IncomeComponents, LedgerRow, LedgerSnapshot, Transaction
from .periods import PeriodKey


def get_merged_transactions(snapshot: LedgerSnapshot, period_key: PeriodKey) -> list[Transaction]:
    """Real plus surviving virtual transactions for ``period_key``, newest first."""

    return merge.get_merged_transactions(
        period_key, snapshot.transactions, snapshot.recurring_expenses
    )


def get_ledger(snapshot: LedgerSnapshot, *, today: date | None = None) -> list[LedgerRow]:
    """One :class:`LedgerRow` per period present in ``snapshot``, ascending."""

    return ledger.build_ledger(snapshot, today=today)


def get_effective_income(snapshot: LedgerSnapshot, period_key: PeriodKey) -> IncomeComponents:
    """Income entry in force for ``period_key`` (history, else snapshot default)."""

    return income_mod.get_effective_income(period_key, snapshot.income_history, snapshot.income)


class HouseholdLedger:
    """Memoizing view over one snapshot.

    Input
    -----
    snapshot:
        The household state to read. It is never modified.
    today:
        Reference date for rules without a start month; defaults to the
        real current date.
    """

    def __init__(self, snapshot: LedgerSnapshot, *, today: date | None = None) -> None:
        self.snapshot = snapshot
        self.today = today
        self._merged: dict[PeriodKey, list[Transaction]] = {}
        self._ledger: list[LedgerRow] | None = None

    # ---- reads -------------------------------------------------------------

    def merged(self, period_key: PeriodKey) -> list[Transaction]:
        cached = self._merged.get(period_key)
        if cached is None:
            cached = get_merged_transactions(self.snapshot, period_key)
            self._merged[period_key] = cached
        return list(cached)

    def ledger(self) -> list[LedgerRow]:
        if self._ledger is None:
            self._ledger = get_ledger(self.snapshot, today=self.today)
        return list(self._ledger)

    def row(self, period_key: PeriodKey) -> LedgerRow:
        return ledger.ledger_row_for(self.ledger(), period_key)

    def effective_income(self, period_key: PeriodKey) -> IncomeComponents:
        return get_effective_income(self.snapshot, period_key)

    def check(self, period_key: PeriodKey) -> ledger.ConsistencyReport:
        """Compare the ledger row for a period with its transaction list."""

        return ledger.check_consistency(self.row(period_key), self.merged(period_key))

    def find(self, period_key: PeriodKey, tx_id: str) -> Transaction | None:
        return merge.find_transaction(self.merged(period_key), tx_id)

    # ---- edits (return a new HouseholdLedger) ------------------------------

    def _replace(self, **updates: object) -> HouseholdLedger:
        return HouseholdLedger(self.snapshot.model_copy(update=updates), today=self.today)

    def import_records(
        self, records: Iterable[ImportedRecord]
    ) -> tuple[HouseholdLedger, ImportResult]:
        rules = self.snapshot.category_rules or categorization.DEFAULT_CATEGORY_RULES
        result = import_transactions(self.snapshot.transactions, records, rules=rules)
        return self._replace(transactions=result.transactions), result

    def rescan_categories(self, *, force: bool = False) -> tuple[HouseholdLedger, int]:
        rules = self.snapshot.category_rules or categorization.DEFAULT_CATEGORY_RULES
        updated, count = categorization.rescan_categories(
            self.snapshot.transactions, rules, force=force
        )
        return self._replace(transactions=tuple(updated)), count

    def set_month_override(
        self,
        rule_id: str,
        period_key: PeriodKey,
        *,
        amount: float | None = None,
        category: str | None = None,
        disabled: bool | None = None,
    ) -> HouseholdLedger:
        rules = recurring.set_month_override(
            self.snapshot.recurring_expenses,
            rule_id,
            period_key,
            amount=amount,
            category=category,
            disabled=disabled,
        )
        return self._replace(recurring_expenses=tuple(rules))

    def delete_transaction(self, period_key: PeriodKey, tx_id: str) -> HouseholdLedger:
        """Delete a transaction shown in a month view.

        Deleting a virtual transaction disables its rule for that month only;
        deleting a real transaction removes it from the stored list. Unknown
        ids raise ``KeyError``.
        """

        tx = self.find(period_key, tx_id)
        if tx is None:
            raise KeyError(f"no transaction {tx_id!r} in {period_key}")
        if tx.virtual_ref is not None:
            rules = recurring.disable_for_month(self.snapshot.recurring_expenses, tx)
            return self._replace(recurring_expenses=tuple(rules))
        kept = tuple(t for t in self.snapshot.transactions if t.id != tx_id)
        return self._replace(transactions=kept)


__all__ = [
    "HouseholdLedger",
    "get_effective_income",
    "get_ledger",
    "get_merged_transactions",
]
