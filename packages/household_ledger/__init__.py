"""Public interface for the ``household_ledger`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .amounts import as_credit, as_expense, parse_amount
from .api import (
    HouseholdLedger,
    get_effective_income,
    get_ledger,
    get_merged_transactions,
)
from .classification import classify_kind
from .duplicates import is_duplicate
from .ledger import build_ledger, check_consistency, ledger_row_for
from .migrations import migrate_recurring_rule, migrate_recurring_rules, migrate_snapshot
from .models import (
    CategoryRule,
    DebtAccount,
    IncomeConfig,
    IncomeHistoryEntry,
    LedgerRow,
    LedgerSnapshot,
    MonthOverride,
    RecurringExpenseRule,
    Transaction,
)
from .periods import get_period_key

__all__ = [
    # API
    "HouseholdLedger",
    "as_credit",
    "as_expense",
    "build_ledger",
    "check_consistency",
    "classify_kind",
    "get_effective_income",
    "get_ledger",
    "get_merged_transactions",
    "get_period_key",
    "is_duplicate",
    "ledger_row_for",
    "migrate_recurring_rule",
    "migrate_recurring_rules",
    "migrate_snapshot",
    "parse_amount",
    # Models
    "CategoryRule",
    "DebtAccount",
    "IncomeConfig",
    "IncomeHistoryEntry",
    "LedgerRow",
    "LedgerSnapshot",
    "MonthOverride",
    "RecurringExpenseRule",
    "Transaction",
]
