"""Recurring expense rules: expansion into virtual transactions and overrides.

A rule models an expectation ("rent appears every month"). For any month it
yields at most one virtual transaction, synthesized fresh on every read and
never stored. Per-month exceptions live in ``rule.overrides`` so that editing
or skipping a single month never mutates the template itself.

Virtual transactions carry ``base_id`` and ``period_key`` as fields. Callers
that need the originating rule use those (see :func:`disable_for_month`)
instead of re-parsing the composite ``id``, which is ambiguous whenever a
rule id itself contains dashes.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .amounts import as_expense
from .logging_setup import get_logger
from .models import MonthOverride, RecurringExpenseRule, Transaction
from .periods import PeriodKey

_logger = get_logger("household_ledger.recurring")


def virtual_id(rule_id: str, period_key: PeriodKey) -> str:
    """Display id of the virtual transaction a rule yields for a month."""

    return f"manual-{rule_id}-{period_key}"


def rule_applies(rule: RecurringExpenseRule, period_key: PeriodKey) -> bool:
    """True when ``rule`` should produce a transaction for ``period_key``.

    The rule must be active, ``period_key`` must fall inside the inclusive
    ``start_month``/``end_month`` bounds (a missing bound is open), and the
    month must not be disabled by an override.
    """

    if not rule.active:
        return False
    if rule.start_month and period_key < rule.start_month:
        return False
    if rule.end_month and period_key > rule.end_month:
        return False
    override = rule.override_for(period_key)
    return not (override is not None and override.disabled)


def effective_amount(rule: RecurringExpenseRule, period_key: PeriodKey) -> float:
    """Positive magnitude for ``period_key`` (override amount wins)."""

    override = rule.override_for(period_key)
    if override is not None and override.amount is not None:
        return override.amount
    return rule.amount


def effective_category(rule: RecurringExpenseRule, period_key: PeriodKey) -> str | None:
    override = rule.override_for(period_key)
    if override is not None and override.category is not None:
        return override.category
    return rule.category


def expand_rule(rule: RecurringExpenseRule, period_key: PeriodKey) -> Transaction | None:
    """Return the virtual transaction ``rule`` yields for a month, if any."""

    if not rule_applies(rule, period_key):
        return None
    return Transaction(
        id=virtual_id(rule.id, period_key),
        base_id=rule.id,
        date=f"{period_key}-{rule.day:02d}",
        period_key=period_key,
        description=rule.description,
        merchant=rule.description,
        item=rule.description,
        amount=as_expense(effective_amount(rule, period_key)),
        category=effective_category(rule, period_key),
        type="expense",
        kind="expense",
        source="manual",
        is_virtual=True,
    )


def expand_recurring_for_month(
    period_key: PeriodKey, rules: Iterable[RecurringExpenseRule] | None
) -> list[Transaction]:
    """Expand every applicable rule into one virtual transaction for a month."""

    out: list[Transaction] = []
    for rule in rules or ():
        tx = expand_rule(rule, period_key)
        if tx is not None:
            out.append(tx)
    return out


def recurring_spend(rules: Iterable[RecurringExpenseRule], period_key: PeriodKey) -> float:
    """Sum of effective amounts of the rules that apply to ``period_key``."""

    return sum(
        (effective_amount(r, period_key) for r in rules if rule_applies(r, period_key)),
        0.0,
    )


# ---------------------------------------------------------------------------
# Override edits (return new rule lists; inputs are never mutated)
# ---------------------------------------------------------------------------


def set_month_override(
    rules: Sequence[RecurringExpenseRule],
    rule_id: str,
    period_key: PeriodKey,
    *,
    amount: float | None = None,
    category: str | None = None,
    disabled: bool | None = None,
) -> list[RecurringExpenseRule]:
    """Merge a per-month override into the rule with ``rule_id``.

    Fields left as ``None`` keep their current override value. An unknown
    ``rule_id`` leaves the rules unchanged.
    """

    out: list[RecurringExpenseRule] = []
    matched = False
    for rule in rules:
        if rule.id != rule_id:
            out.append(rule)
            continue
        matched = True
        current = rule.override_for(period_key) or MonthOverride()
        updates: dict[str, object] = {}
        if amount is not None:
            updates["amount"] = amount
        if category is not None:
            updates["category"] = category
        if disabled is not None:
            updates["disabled"] = disabled
        merged = current.model_copy(update=updates)
        overrides = {**rule.overrides, period_key: merged}
        out.append(rule.model_copy(update={"overrides": overrides}))
    if not matched:
        _logger.debug("override for unknown rule %r ignored", rule_id)
    return out


def disable_for_month(
    rules: Sequence[RecurringExpenseRule], virtual_tx: Transaction
) -> list[RecurringExpenseRule]:
    """Skip one month of a recurring expense by disabling its rule there.

    This is what deleting a virtual transaction means: the rule is found via
    the transaction's ``base_id``/``period_key``. Raises ``ValueError`` for a
    transaction that is not virtual.
    """

    ref = virtual_tx.virtual_ref
    if ref is None:
        raise ValueError(f"transaction {virtual_tx.id!r} is not a virtual transaction")
    return set_month_override(rules, ref.base_id, ref.period_key, disabled=True)


__all__ = [
    "disable_for_month",
    "effective_amount",
    "effective_category",
    "expand_recurring_for_month",
    "expand_rule",
    "recurring_spend",
    "rule_applies",
    "set_month_override",
    "virtual_id",
]
