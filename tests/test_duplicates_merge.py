from __future__ import annotations

from household_ledger.duplicates import descriptions_match, is_duplicate, transaction_key
from household_ledger.merge import (
    find_transaction,
    get_merged_transactions,
    get_merged_transactions_for_range,
)
from household_ledger.models import RecurringExpenseRule, Transaction
from household_ledger.recurring import expand_recurring_for_month


def _rule(**kw) -> RecurringExpenseRule:
    data = {"id": "r1", "amount": 50, "category": "Rent", "startMonth": "2025-01"}
    data.update(kw)
    return RecurringExpenseRule.model_validate(data)


def _virtual(rule: RecurringExpenseRule, period: str = "2025-03") -> Transaction:
    (tx,) = expand_recurring_for_month(period, [rule])
    return tx


# ---- is_duplicate golden cases -------------------------------------------------


def test_same_amount_and_description_is_duplicate():
    real = Transaction(date="2025-03-05", amount=-50, description="Rent")
    assert is_duplicate(real, _virtual(_rule()))


def test_amount_outside_tolerance_is_not_duplicate():
    real = Transaction(date="2025-03-05", amount=-50.02, description="Rent")
    assert not is_duplicate(real, _virtual(_rule()))


def test_amount_within_tolerance_matches():
    real = Transaction(date="2025-03-05", amount=-50.005, description="rent payment")
    assert is_duplicate(real, _virtual(_rule()))


def test_large_exact_amount_alone_is_duplicate():
    real = Transaction(date="2025-03-05", amount=-1850, description="TFR 0042")
    virtual = _virtual(_rule(amount=1850, description="Mortgage", category="Housing"))
    assert is_duplicate(real, virtual)


def test_small_amount_needs_description_or_category():
    virtual = _virtual(_rule(amount=15, description="Netflix", category="Subscriptions"))
    assert not is_duplicate(Transaction(amount=-15, description="Cinema"), virtual)
    assert is_duplicate(Transaction(amount=-15, description="NETFLIX.COM"), virtual)
    assert is_duplicate(
        Transaction(amount=-15, description="Cinema", category="Subscriptions"), virtual
    )


def test_item_is_used_when_description_missing():
    virtual = _virtual(_rule(amount=15, description="Netflix", category="Subscriptions"))
    assert is_duplicate(Transaction(amount=-15, item="netflix"), virtual)


def test_missing_description_is_contained_in_every_description():
    assert descriptions_match("", "Rent")
    assert descriptions_match(None, None)
    assert not descriptions_match("Gym", "Rent")
    # Same amount and a missing description: the real row covers the rule.
    real = Transaction(date="2025-03-05", amount=-50, category="Groceries")
    virtual = _virtual(_rule(description="Rent"))
    assert is_duplicate(real, virtual)
    assert len(get_merged_transactions("2025-03", [real], [_rule(description="Rent")])) == 1


def test_missing_categories_are_equal():
    virtual = _virtual(_rule(amount=15, description="Gym", category=None))
    assert is_duplicate(Transaction(amount=-15, description="Pool"), virtual)
    fitness = Transaction(amount=-15, description="Pool", category="Fitness")
    assert not is_duplicate(fitness, virtual)


def test_sign_does_not_matter_for_amount_match():
    real = Transaction(amount=50, description="Rent")
    assert is_duplicate(real, _virtual(_rule()))


# ---- transaction_key -------------------------------------------------------------


def test_transaction_key_prefers_reference():
    assert transaction_key({"reference": " 320252 ", "amount": 1}) == "ref:320252"


def test_transaction_key_composite():
    tx = Transaction(date="2025-03-05", time="10:01", amount=-12.5, description="Cafe X")
    tx = tx.model_copy(update={"card_member": "A SMITH"})
    assert transaction_key(tx) == "2025-03-05|10:01|-12.50|cafe x|A SMITH"
    assert transaction_key({"date": "2025-03-05", "amount": "3", "merchant": "M"}) == (
        "2025-03-05||3.00|m|"
    )


# ---- merged month view -----------------------------------------------------------


def test_real_transaction_suppresses_matching_virtual():
    real = Transaction(id="t1", date="2025-03-05", amount=-50, description="Rent")
    merged = get_merged_transactions("2025-03", [real], [_rule()])
    rents = [t for t in merged if "rent" in t.text.lower()]
    assert len(rents) == 1
    assert rents[0].id == "t1"
    assert not rents[0].is_virtual


def test_virtual_kept_without_matching_real_transaction():
    real = Transaction(id="t1", date="2025-03-05", amount=-12, description="Coffee")
    merged = get_merged_transactions("2025-03", [real], [_rule()])
    assert [t.id for t in merged] == ["t1", "manual-r1-2025-03"]


def test_merged_is_sorted_newest_first_and_defaults_source():
    txs = [
        Transaction(id="a", date="2025-03-02", amount=-1, description="a"),
        Transaction(id="b", date="2025-03-20", amount=-2, description="b", source="bank"),
        Transaction(id="c", date="2025-04-01", amount=-3, description="c"),
    ]
    merged = get_merged_transactions("2025-03", txs, None)
    assert [t.id for t in merged] == ["b", "a"]
    assert [t.source for t in merged] == ["bank", "amex"]


def test_statement_period_overrides_date_month():
    tx = Transaction.model_validate(
        {"id": "s", "date": "2025-02-27", "periodKey": "2025-03", "amount": -9}
    )
    assert [t.id for t in get_merged_transactions("2025-03", [tx], [])] == ["s"]
    assert get_merged_transactions("2025-02", [tx], []) == []


def test_range_and_lookup():
    merged = get_merged_transactions_for_range("2025-01", "2025-03", [], [_rule()])
    assert [t.period_key for t in merged] == ["2025-01", "2025-02", "2025-03"]
    found = find_transaction(merged, "manual-r1-2025-02")
    assert found is not None
    assert found.virtual_ref.base_id == "r1"
    assert find_transaction(merged, "missing") is None
