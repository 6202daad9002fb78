from __future__ import annotations

import pytest
from household_ledger.models import RecurringExpenseRule, Transaction
from household_ledger.recurring import (
    disable_for_month,
    expand_recurring_for_month,
    recurring_spend,
    rule_applies,
    set_month_override,
    virtual_id,
)


def _rent(**overrides) -> RecurringExpenseRule:
    data = {"id": "r1", "amount": 50, "category": "Rent", "startMonth": "2025-01", "active": True}
    data.update(overrides)
    return RecurringExpenseRule.model_validate(data)


def test_rule_yields_one_negative_virtual_transaction():
    (tx,) = expand_recurring_for_month("2025-03", [_rent()])
    assert tx.amount == -50
    assert tx.category == "Rent"
    assert tx.kind == "expense"
    assert tx.source == "manual"
    assert tx.is_virtual
    assert tx.id == "manual-r1-2025-03"
    assert tx.date == "2025-03-01"
    assert tx.period_key == "2025-03"


def test_disabled_override_skips_only_that_month():
    rule = _rent(overrides={"2025-03": {"disabled": True}})
    assert expand_recurring_for_month("2025-03", [rule]) == []
    assert len(expand_recurring_for_month("2025-02", [rule])) == 1


def test_override_amount_and_category_win_for_their_month():
    rule = _rent(overrides={"2025-04": {"amount": "65.50", "category": "Housing"}})
    (april,) = expand_recurring_for_month("2025-04", [rule])
    (may,) = expand_recurring_for_month("2025-05", [rule])
    assert april.amount == -65.5
    assert april.category == "Housing"
    assert may.amount == -50
    assert may.category == "Rent"


def test_bounds_and_active_flag():
    rule = _rent(endMonth="2025-06", day=15)
    assert not rule_applies(rule, "2024-12")
    assert rule_applies(rule, "2025-01")
    assert rule_applies(rule, "2025-06")
    assert not rule_applies(rule, "2025-07")
    assert expand_recurring_for_month("2025-02", [rule])[0].date == "2025-02-15"
    assert expand_recurring_for_month("2025-02", [_rent(active=False)]) == []


def test_legacy_start_field_is_accepted():
    rule = RecurringExpenseRule.model_validate(
        {"id": "x", "amount": 10, "startPeriodKey": "2025-05", "endPeriodKey": "2025-06"}
    )
    assert rule.start_month == "2025-05"
    assert rule.end_month == "2025-06"
    assert not rule_applies(rule, "2025-04")


def test_at_most_one_virtual_per_rule_and_period():
    rules = [_rent(id="a"), _rent(id="b", description="Storage")]
    for period in ("2025-01", "2025-02", "2025-12"):
        out = expand_recurring_for_month(period, rules)
        assert sorted(t.base_id for t in out) == ["a", "b"]


def test_virtual_text_is_the_rule_description():
    (tx,) = expand_recurring_for_month("2025-03", [_rent()])
    assert tx.description == ""
    assert tx.text == ""
    (named,) = expand_recurring_for_month("2025-03", [_rent(description="Flat rent")])
    assert named.description == "Flat rent"


def test_recurring_spend_honours_overrides():
    rules = [
        _rent(id="a", overrides={"2025-03": {"amount": 70}}),
        _rent(id="b", amount=20, overrides={"2025-03": {"disabled": True}}),
    ]
    assert recurring_spend(rules, "2025-03") == pytest.approx(70)
    assert recurring_spend(rules, "2025-02") == pytest.approx(70)


def test_set_month_override_returns_new_rules():
    rules = [_rent()]
    updated = set_month_override(rules, "r1", "2025-03", amount=80)
    assert rules[0].overrides == {}
    assert updated[0].override_for("2025-03").amount == 80
    # Merges into the existing override.
    again = set_month_override(updated, "r1", "2025-03", category="Housing")
    o = again[0].override_for("2025-03")
    assert (o.amount, o.category, o.disabled) == (80, "Housing", False)


def test_unknown_rule_override_is_inert():
    rules = [_rent()]
    assert set_month_override(rules, "nope", "2025-03", disabled=True) == rules


def test_disable_for_month_uses_fields_not_the_composite_id():
    rule = _rent(id="rule-with-dashes-1")
    (virtual,) = expand_recurring_for_month("2025-03", [rule])
    assert virtual.id == virtual_id("rule-with-dashes-1", "2025-03")
    rules = disable_for_month([rule], virtual)
    assert rules[0].override_for("2025-03").disabled
    assert expand_recurring_for_month("2025-03", rules) == []
    assert len(expand_recurring_for_month("2025-04", rules)) == 1


def test_disable_for_month_rejects_real_transactions():
    with pytest.raises(ValueError):
        disable_for_month([_rent()], Transaction(id="t1", amount=-50, date="2025-03-02"))
