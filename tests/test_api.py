from __future__ import annotations

from datetime import date

import pytest
from household_ledger import api
from household_ledger.api import (
    HouseholdLedger,
    get_effective_income,
    get_ledger,
    get_merged_transactions,
)
from household_ledger.ingest.amex_csv import ImportedRecord
from household_ledger.models import LedgerSnapshot

TODAY = date(2025, 6, 15)


def _snapshot(**extra) -> LedgerSnapshot:
    state = {
        "transactions": [
            {"id": "t1", "date": "2025-03-04", "amount": -30, "description": "Woolworths"},
            {"id": "t2", "date": "2025-04-09", "amount": -8, "description": "Coffee"},
        ],
        "recurringExpenses": [
            {"id": "gym", "amount": 40, "description": "Gym", "startMonth": "2025-03"}
        ],
        "income": {"salaryEric": 3000, "other": 200},
        "schemaVersion": 2,
    }
    state.update(extra)
    return LedgerSnapshot.model_validate(state)


def test_module_functions_read_the_snapshot():
    snap = _snapshot()
    merged = get_merged_transactions(snap, "2025-03")
    assert [t.id for t in merged] == ["t1", "manual-gym-2025-03"]
    assert [r.month_key for r in get_ledger(snap, today=TODAY)] == ["2025-03", "2025-04"]
    assert get_effective_income(snap, "2025-03").total == 3200


def test_derived_views_are_memoized(monkeypatch: pytest.MonkeyPatch):
    calls: list[str] = []
    real = api.merge.get_merged_transactions

    def counting(period_key, transactions, rules):
        calls.append(period_key)
        return real(period_key, transactions, rules)

    monkeypatch.setattr(api.merge, "get_merged_transactions", counting)
    book = HouseholdLedger(_snapshot(), today=TODAY)

    first = book.merged("2025-03")
    first.clear()
    assert len(book.merged("2025-03")) == 2
    assert calls == ["2025-03"]
    assert book.ledger() == book.ledger()
    assert book.row("2025-04").total_expenses == pytest.approx(48)


def test_deleting_a_virtual_transaction_skips_one_month():
    book = HouseholdLedger(_snapshot(), today=TODAY)
    edited = book.delete_transaction("2025-03", "manual-gym-2025-03")

    assert [t.id for t in edited.merged("2025-03")] == ["t1"]
    assert [t.id for t in edited.merged("2025-04")] == ["t2", "manual-gym-2025-04"]
    assert edited.snapshot.recurring_expenses[0].overrides["2025-03"].disabled
    assert len(book.merged("2025-03")) == 2


def test_deleting_a_real_transaction_removes_it():
    book = HouseholdLedger(_snapshot(), today=TODAY)
    edited = book.delete_transaction("2025-03", "t1")
    assert [t.id for t in edited.snapshot.transactions] == ["t2"]
    assert edited.row("2025-03").total_expenses == pytest.approx(40)


def test_deleting_an_unknown_transaction_raises():
    book = HouseholdLedger(_snapshot(), today=TODAY)
    with pytest.raises(KeyError):
        book.delete_transaction("2025-03", "t2")


def test_find_returns_virtual_transaction_with_its_rule():
    book = HouseholdLedger(_snapshot(), today=TODAY)
    tx = book.find("2025-04", "manual-gym-2025-04")
    assert tx is not None
    assert tx.virtual_ref is not None
    assert tx.virtual_ref.base_id == "gym"
    assert book.find("2025-04", "missing") is None


def test_month_override_changes_one_month():
    book = HouseholdLedger(_snapshot(), today=TODAY)
    edited = book.set_month_override("gym", "2025-04", amount=55, category="Fitness")
    april = edited.find("2025-04", "manual-gym-2025-04")
    assert april.amount == -55
    assert april.category == "Fitness"
    assert edited.find("2025-03", "manual-gym-2025-03").amount == -40


def test_import_uses_household_category_rules():
    snap = _snapshot(categoryRules=[{"category": "Fitness", "keywords": ["anytime"]}])
    book = HouseholdLedger(snap, today=TODAY)
    record = ImportedRecord(date="2025-05-02", amount=60, description="ANYTIME FITNESS")
    edited, result = book.import_records([record])

    assert result.imported == 1
    assert result.added[0].category == "Fitness"
    assert len(edited.snapshot.transactions) == 3
    assert edited.row("2025-05").total_expenses == pytest.approx(100)


def test_rescan_categories_returns_new_ledger():
    book = HouseholdLedger(_snapshot(), today=TODAY)
    edited, count = book.rescan_categories()
    assert count == 2
    assert {t.category for t in edited.snapshot.transactions} == {"Groceries", "Coffee"}
    assert all(t.category is None for t in book.snapshot.transactions)
