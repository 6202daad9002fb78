"""Duplicate detection shared by the month merger and the importer.

Public surface:

- ``is_duplicate(real, virtual)``: whether a recurring rule's virtual
  placeholder is already covered by a real (imported or manual) transaction.
  False negatives double-count spend; false positives silently drop a
  placeholder. The rule is pinned down by golden tests.
- ``transaction_key(tx)``: composite identity used to skip re-imported
  statement lines (``ref:<reference>`` when a reference exists, else
  ``date|time|amount|description|card member``).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .amounts import parse_amount
from .models import Transaction

# Amounts closer than this are the same amount.
AMOUNT_TOLERANCE = 0.01

# An exact amount match above this magnitude is treated as a duplicate on its
# own; coincidences that large are improbable.
LARGE_AMOUNT_THRESHOLD = 100.0


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def _get(tx: Transaction | Mapping[str, Any], name: str) -> Any:
    if isinstance(tx, Mapping):
        return tx.get(name)
    return getattr(tx, name, None)


def descriptions_match(a: str | None, b: str | None) -> bool:
    """Case-insensitive equality or substring containment.

    A missing description is the empty string, which every description
    contains.
    """

    x, y = _norm(a), _norm(b)
    return x == y or x in y or y in x


def is_duplicate(real: Transaction, virtual: Transaction) -> bool:
    """True when ``real`` already accounts for the ``virtual`` placeholder.

    Amounts must match within :data:`AMOUNT_TOLERANCE` (magnitudes, so sign
    differences do not matter). Given matching amounts, the pair is a
    duplicate when the magnitude exceeds :data:`LARGE_AMOUNT_THRESHOLD`, or
    the descriptions fuzzy-match, or the categories are equal (two missing
    categories are equal).
    """

    real_amt = abs(parse_amount(real.amount))
    virt_amt = abs(parse_amount(virtual.amount))
    if abs(real_amt - virt_amt) >= AMOUNT_TOLERANCE:
        return False
    if real_amt > LARGE_AMOUNT_THRESHOLD:
        return True

    real_desc = real.description or real.item
    if descriptions_match(real_desc, virtual.description):
        return True

    return _norm(real.category) == _norm(virtual.category)


def transaction_key(tx: Transaction | Mapping[str, Any]) -> str:
    """Composite import identity for ``tx``."""

    reference = _get(tx, "reference")
    if reference is not None and str(reference).strip():
        return f"ref:{str(reference).strip()}"

    date = str(_get(tx, "date") or "").strip()
    time = str(_get(tx, "time") or "").strip()
    amount = f"{parse_amount(_get(tx, 'amount')):.2f}"
    desc = _norm(_get(tx, "description") or _get(tx, "merchant"))
    card = str(_get(tx, "card_member") or _get(tx, "cardMember") or "").strip()
    return f"{date}|{time}|{amount}|{desc}|{card}"


__all__ = [
    "AMOUNT_TOLERANCE",
    "LARGE_AMOUNT_THRESHOLD",
    "descriptions_match",
    "is_duplicate",
    "transaction_key",
]
