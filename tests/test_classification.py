from __future__ import annotations

import pytest
from household_ledger.classification import (
    PAYMENT_KEYWORDS,
    classify_all,
    classify_kind,
    is_payment_text,
    with_kind,
)
from household_ledger.models import Transaction


def test_positive_unexplained_credit_is_refund():
    tx = {"amount": 120, "category": "Dining Out", "description": "Unknown"}
    assert classify_kind(tx) == "refund"


def test_negative_grocery_is_expense():
    assert classify_kind({"amount": -45, "category": "Groceries"}) == "expense"


@pytest.mark.parametrize(
    ("tx", "expected"),
    [
        ({"amount": -500, "category": "Transfers"}, "transfer"),
        ({"amount": 5000, "category": "Income"}, "income"),
        ({"amount": 10, "type": "income"}, "income"),
        ({"amount": -300, "category": "Debt"}, "payment"),
        ({"amount": -90, "category": "Bills Payments"}, "payment"),
        ({"amount": 800, "description": "PAYMENT RECEIVED - THANK YOU"}, "payment"),
        ({"amount": -60, "merchant": "BPAY electricity"}, "payment"),
        ({"amount": 4200, "description": "ACME PAYROLL"}, "income"),
        ({"amount": -4200, "description": "ACME PAYROLL"}, "expense"),
        ({"amount": 0}, "expense"),
        ({}, "expense"),
    ],
)
def test_priority_rules(tx, expected):
    assert classify_kind(tx) == expected


def test_category_beats_keywords():
    # Transfers category wins over an income-looking description.
    assert classify_kind({"amount": 100, "category": "Transfers", "description": "salary"}) == "transfer"


def test_explicit_kind_is_kept():
    tx = Transaction(amount=250, kind="expense", category="Income")
    assert classify_kind(tx) == "expense"
    assert with_kind(tx) is tx


def test_unknown_kind_is_reclassified():
    tx = Transaction(amount=-20, kind="mystery")
    assert tx.kind is None
    assert with_kind(tx).kind == "expense"


def test_classification_is_idempotent():
    txs = [
        Transaction(amount=120, category="Dining Out", description="Unknown"),
        Transaction(amount=-45, category="Groceries"),
        Transaction(amount=-500, category="Transfers"),
        Transaction(amount=3000, description="salary"),
    ]
    once = classify_all(txs)
    twice = classify_all(once)
    assert [t.kind for t in once] == ["refund", "expense", "transfer", "income"]
    assert [t.kind for t in twice] == [t.kind for t in once]
    assert all(a is b for a, b in zip(once, twice, strict=True))


def test_is_payment_text():
    assert is_payment_text("American Express Payment")
    assert not is_payment_text("Woolworths")
    assert not is_payment_text(None)


@pytest.mark.parametrize("keyword", PAYMENT_KEYWORDS)
def test_every_payment_phrase_classifies_as_payment(keyword):
    text = f"AMEX {keyword.upper()} 0425"
    assert is_payment_text(text)
    assert classify_kind(Transaction(amount=-10, merchant=text)) == "payment"
