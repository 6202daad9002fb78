"""Cash-flow kind classification.

Every transaction is folded into exactly one of ``expense``, ``income``,
``payment``, ``refund`` or ``transfer`` before aggregation. An explicit
``kind`` always wins, so classification is idempotent: running it again over
already-classified transactions never flips a value.

When ``kind`` is missing, rules are evaluated in a fixed priority order:
category first (explicit user/import intent), then description keywords,
then the amount sign.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .amounts import parse_amount
from .models import (
    INCOME_CATEGORY,
    KINDS,
    PAYMENT_CATEGORIES,
    TRANSFERS_CATEGORY,
    Kind,
    Transaction,
)

# Statement repayment lines (card payments, direct debits, BPAY).
PAYMENT_KEYWORDS: tuple[str, ...] = (
    "direct debit",
    "bpay",
    "card payment",
    "amex payment",
    "american express payment",
    "payment received",
    "payment thank you",
)

# Only applied to positive amounts.
INCOME_KEYWORDS: tuple[str, ...] = (
    "salary",
    "payroll",
    "wages",
    "deposit",
    "transfer in",
)


def _field(tx: Transaction | Mapping[str, Any], name: str) -> Any:
    if isinstance(tx, Mapping):
        return tx.get(name)
    return getattr(tx, name, None)


def _search_text(tx: Transaction | Mapping[str, Any]) -> str:
    parts = (_field(tx, "description"), _field(tx, "merchant"), _field(tx, "item"))
    return " ".join(str(p) for p in parts if p).lower()


def is_payment_text(text: str | None) -> bool:
    """True when ``text`` reads like a card/statement repayment line."""

    s = (text or "").lower()
    return any(k in s for k in PAYMENT_KEYWORDS)


def classify_kind(tx: Transaction | Mapping[str, Any]) -> Kind:
    """Return the cash-flow kind of ``tx``.

    Accepts a :class:`~household_ledger.models.Transaction` or a raw mapping.
    An explicit valid ``kind`` is returned unchanged.
    """

    explicit = _field(tx, "kind")
    if isinstance(explicit, str) and explicit in KINDS:
        return explicit  # type: ignore[return-value]

    category = _field(tx, "category")
    if category == TRANSFERS_CATEGORY:
        return "transfer"
    if category == INCOME_CATEGORY or _field(tx, "type") == "income":
        return "income"
    if category in PAYMENT_CATEGORIES:
        return "payment"

    text = _search_text(tx)
    amount = parse_amount(_field(tx, "amount"))
    if is_payment_text(text):
        return "payment"
    if amount > 0 and any(k in text for k in INCOME_KEYWORDS):
        return "income"

    if amount < 0:
        return "expense"
    if amount > 0:
        # Unexplained credits are treated as returns.
        return "refund"
    return "expense"


def with_kind(tx: Transaction) -> Transaction:
    """Return ``tx`` with ``kind`` resolved (the same object when already set)."""

    if tx.kind is not None:
        return tx
    return tx.model_copy(update={"kind": classify_kind(tx)})


def classify_all(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [with_kind(tx) for tx in transactions]


__all__ = [
    "INCOME_KEYWORDS",
    "PAYMENT_KEYWORDS",
    "classify_all",
    "classify_kind",
    "is_payment_text",
    "with_kind",
]
