from __future__ import annotations

import logging
from datetime import date

import pytest
from household_ledger.migrations import (
    DEFAULT_RULE_CATEGORY,
    LEGACY_MANUAL_CATEGORY,
    SCHEMA_VERSION,
    heal_expense_signs,
    migrate_recurring_rule,
    migrate_recurring_rules,
    migrate_snapshot,
    needs_sign_fix,
)
from household_ledger.models import Transaction

TODAY = date(2025, 6, 15)


def test_legacy_rule_is_brought_to_current_shape():
    migrated = migrate_recurring_rule(
        {
            "id": "r1",
            "description": "Rent",
            "amount": "1,200",
            "startPeriodKey": "2024-05",
            "endPeriodKey": "2025-04",
            "category": LEGACY_MANUAL_CATEGORY,
        },
        today=TODAY,
    )
    assert migrated == {
        "id": "r1",
        "description": "Rent",
        "amount": 1200.0,
        "day": 1,
        "category": DEFAULT_RULE_CATEGORY,
        "frequency": "monthly",
        "startMonth": "2024-05",
        "endMonth": "2025-04",
        "active": True,
        "overrides": {},
    }


def test_rule_without_start_starts_this_month():
    migrated = migrate_recurring_rule({"id": "r2", "amount": 9, "active": False}, today=TODAY)
    assert migrated["startMonth"] == "2025-06"
    assert migrated["endMonth"] is None
    assert migrated["active"] is False
    assert migrated["description"] == ""


def test_rule_keeps_its_own_category():
    migrated = migrate_recurring_rule({"id": "r3", "amount": 9, "category": "Gym"}, today=TODAY)
    assert migrated["category"] == "Gym"


def test_rule_migration_is_idempotent():
    once = migrate_recurring_rules(
        [{"id": "a", "amount": 5, "startMonth": "2025-01"}, {"id": "b", "amount": 7}],
        today=TODAY,
    )
    twice = migrate_recurring_rules(once, today=date(2030, 1, 1))
    assert twice == once


def test_migrated_rule_is_returned_untouched():
    current = {
        "id": "x",
        "amount": 5,
        "frequency": "monthly",
        "overrides": {"2025-02": {"disabled": True}},
        "category": LEGACY_MANUAL_CATEGORY,
    }
    assert migrate_recurring_rule(current, today=TODAY) == current


@pytest.mark.parametrize(
    "tx, fix",
    [
        (Transaction(amount=50, category="Groceries", source="manual"), True),
        (Transaction(amount=50), True),
        (Transaction(amount=-50, category="Groceries"), False),
        (Transaction(amount=50, source="amex_csv"), False),
        (Transaction(amount=50, source="amex"), False),
        (Transaction(amount=50, kind="refund"), False),
        (Transaction(amount=50, category="Salary"), False),
        (Transaction(amount=50, category="Bank Interest"), False),
    ],
)
def test_needs_sign_fix(tx, fix):
    assert needs_sign_fix(tx) is fix


def test_heal_expense_signs_negates_and_counts():
    txs = [
        Transaction(id="a", amount=50, category="Groceries", source="manual"),
        Transaction(id="b", amount=-20, category="Coffee"),
        Transaction(id="c", amount=30, source="amex_csv", kind="refund"),
    ]
    healed, fixed = heal_expense_signs(txs)
    assert fixed == 1
    assert healed[0].amount == -50
    assert healed[0].kind == "expense"
    assert healed[1:] == txs[1:]
    assert txs[0].amount == 50


def test_snapshot_from_version_zero(caplog):
    raw = {
        "manualExpenses": [
            {"id": "rent", "description": "Rent", "amount": 1800, "startPeriodKey": "2024-01"}
        ],
        "transactions": [
            {"id": "t1", "date": "2025-01-03", "amount": 42, "category": "Groceries", "source": "manual"}
        ],
    }
    with caplog.at_level(logging.INFO, logger="household_ledger.migrations"):
        snap = migrate_snapshot(raw, today=TODAY)

    assert snap.schema_version == SCHEMA_VERSION
    (rule,) = snap.recurring_expenses
    assert rule.start_month == "2024-01"
    assert rule.category == DEFAULT_RULE_CATEGORY
    assert snap.transactions[0].amount == -42
    assert "manualExpenses" in raw
    assert "recurring rule" in caplog.text
    assert "fixed sign" in caplog.text


def test_current_snapshot_is_not_healed_again():
    raw = {
        "schemaVersion": SCHEMA_VERSION,
        "transactions": [{"date": "2025-01-03", "amount": 42, "category": "Groceries"}],
    }
    snap = migrate_snapshot(raw, today=TODAY)
    assert snap.transactions[0].amount == 42


def test_migrate_snapshot_twice_is_stable():
    raw = {
        "recurringExpenses": [{"id": "g", "amount": 40, "description": "Gym"}],
        "transactions": [{"date": "2025-01-03", "amount": 10, "source": "manual"}],
    }
    first = migrate_snapshot(raw, today=TODAY)
    second = migrate_snapshot(first.to_state(), today=TODAY)
    assert second == first


def test_migrate_snapshot_rejects_non_mappings():
    with pytest.raises(TypeError):
        migrate_snapshot([1, 2, 3])  # type: ignore[arg-type]
