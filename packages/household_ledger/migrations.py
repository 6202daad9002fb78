"""One-shot migrations applied to stored household state at load time.

Stored state predates several conventions the engine now relies on:

1. Recurring rules were once saved with ``startPeriodKey``/``endPeriodKey``,
   no ``frequency``/``overrides`` and a catch-all category.
2. Manual expenses were once saved with positive amounts.

Each step is keyed to :data:`SCHEMA_VERSION`. A snapshot records the version
it was migrated to so the steps run once; every step is also idempotent, so
running it again is harmless.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from .amounts import parse_amount
from .logging_setup import get_logger
from .models import AMEX_SOURCES, LedgerSnapshot, Transaction
from .periods import current_month

_logger = get_logger("household_ledger.migrations")

SCHEMA_VERSION = 2

LEGACY_MANUAL_CATEGORY = "Monthly Manual Fixed Expenses"
DEFAULT_RULE_CATEGORY = "Manual Expenses"

# Category substrings that mark a positive manual amount as genuine income.
INCOME_LIKE_CATEGORIES: tuple[str, ...] = (
    "income",
    "salary",
    "wages",
    "dividends",
    "interest",
    "refunds",
    "reimbursements",
)

_CREDIT_KINDS = frozenset({"income", "refund", "payment", "transfer"})


# ---------------------------------------------------------------------------
# Recurring rules
# ---------------------------------------------------------------------------


def _is_migrated_rule(raw: Mapping[str, Any]) -> bool:
    return bool(raw.get("frequency")) and "overrides" in raw


def migrate_recurring_rule(raw: Mapping[str, Any], *, today: date | None = None) -> dict[str, Any]:
    """Bring one stored rule to the current shape.

    A rule that already has a ``frequency`` and an ``overrides`` key is
    returned as a plain copy, untouched.
    """

    if _is_migrated_rule(raw):
        return dict(raw)

    category = raw.get("category")
    if not category or category == LEGACY_MANUAL_CATEGORY:
        category = DEFAULT_RULE_CATEGORY

    return {
        "id": raw.get("id") or "",
        "description": raw.get("description") or "",
        "amount": parse_amount(raw.get("amount")),
        "day": raw.get("day") or 1,
        "category": category,
        "frequency": "monthly",
        "startMonth": raw.get("startPeriodKey") or raw.get("startMonth") or current_month(today),
        "endMonth": raw.get("endPeriodKey") or raw.get("endMonth") or None,
        "active": raw.get("active") is not False,
        "overrides": raw.get("overrides") or {},
    }


def migrate_recurring_rules(
    rules: Sequence[Any] | None, *, today: date | None = None
) -> list[Any]:
    """Migrate every stored rule.

    Entries that are not mappings pass through untouched; validation drops
    them later.
    """

    if not isinstance(rules, (list, tuple)):
        return []
    return [
        migrate_recurring_rule(r, today=today) if isinstance(r, Mapping) else r for r in rules
    ]


# ---------------------------------------------------------------------------
# Expense signs
# ---------------------------------------------------------------------------


def _is_income_like(category: str | None) -> bool:
    cat = (category or "").lower()
    return any(word in cat for word in INCOME_LIKE_CATEGORIES)


def needs_sign_fix(tx: Transaction) -> bool:
    """True for a legacy manual expense that was stored with a positive amount.

    Imported card transactions are trusted (their positive amounts are
    refunds and payments), as are explicit credit kinds and income-like
    categories.
    """

    if tx.amount <= 0:
        return False
    if tx.source in AMEX_SOURCES:
        return False
    if tx.kind in _CREDIT_KINDS:
        return False
    return not _is_income_like(tx.category)


def heal_expense_signs(
    transactions: Iterable[Transaction],
) -> tuple[list[Transaction], int]:
    """Negate positive legacy manual expenses and pin their kind to expense.

    Returns the new list and the number of transactions fixed.
    """

    out: list[Transaction] = []
    fixed = 0
    for tx in transactions:
        if needs_sign_fix(tx):
            tx = tx.model_copy(update={"amount": -tx.amount, "kind": "expense"})
            fixed += 1
        out.append(tx)
    return out, fixed


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def _stored_version(raw: Mapping[str, Any]) -> int:
    value = raw.get("schemaVersion", raw.get("schema_version", 0))
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def migrate_snapshot(raw: Mapping[str, Any], *, today: date | None = None) -> LedgerSnapshot:
    """Validate a stored state dict, running every pending migration step."""

    if not isinstance(raw, Mapping):
        raise TypeError(f"stored state must be a mapping, got {type(raw).__name__}")

    state = dict(raw)
    version = _stored_version(state)

    if version < 1:
        legacy = state.pop("manualExpenses", None)
        rules = state.get("recurringExpenses", legacy)
        if rules:
            state["recurringExpenses"] = migrate_recurring_rules(rules, today=today)
            _logger.info("migrated %d recurring rule(s)", len(state["recurringExpenses"]))

    snapshot = LedgerSnapshot.model_validate(state)

    if version < 2:
        healed, fixed = heal_expense_signs(snapshot.transactions)
        if fixed:
            _logger.info("fixed sign on %d positive manual expense(s)", fixed)
            snapshot = snapshot.model_copy(update={"transactions": tuple(healed)})

    if snapshot.schema_version != SCHEMA_VERSION:
        snapshot = snapshot.model_copy(update={"schema_version": SCHEMA_VERSION})
    return snapshot


__all__ = [
    "DEFAULT_RULE_CATEGORY",
    "INCOME_LIKE_CATEGORIES",
    "LEGACY_MANUAL_CATEGORY",
    "SCHEMA_VERSION",
    "heal_expense_signs",
    "migrate_recurring_rule",
    "migrate_recurring_rules",
    "migrate_snapshot",
    "needs_sign_fix",
]
