"""Amount normalization and sign-convention helpers.

Stored amounts arrive loosely typed: numbers, currency strings such as
``"$1,234.56"``, or nothing at all. :func:`parse_amount` turns any of these
into a finite ``float`` and never raises; junk becomes ``0.0``.

Internal sign convention: expenses are negative, credits (income, refunds,
payments) are positive. ``ExpenseAmount`` and ``CreditAmount`` name the two
halves of that convention for code that produces amounts of a known side.
"""

from __future__ import annotations

import math
import re
from typing import Any, NewType

ExpenseAmount = NewType("ExpenseAmount", float)
"""An amount on the expense side of the ledger (always ``<= 0``)."""

CreditAmount = NewType("CreditAmount", float)
"""An amount on the credit side of the ledger (always ``>= 0``)."""

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")


def parse_amount(value: Any) -> float:
    """Return ``value`` as a finite float, or ``0.0`` when it is unusable.

    Numbers pass through unchanged (``NaN``/``inf`` become ``0.0``). Anything
    else is stringified, stripped of every character other than digits, ``.``
    and ``-``, then parsed.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        f = float(value)
        return f if math.isfinite(f) else 0.0
    cleaned = _NON_NUMERIC_RE.sub("", str(value).strip())
    try:
        f = float(cleaned)
    except ValueError:
        return 0.0
    return f if math.isfinite(f) else 0.0


def as_expense(value: Any) -> ExpenseAmount:
    """Return the magnitude of ``value`` on the expense side (negative)."""

    return ExpenseAmount(-abs(parse_amount(value)))


def as_credit(value: Any) -> CreditAmount:
    """Return the magnitude of ``value`` on the credit side (positive)."""

    return CreditAmount(abs(parse_amount(value)))


def fmt_amount(value: Any) -> str:
    # Two decimals, ASCII dot, leading minus for negatives.
    f = parse_amount(value)
    if f == 0:
        f = 0.0
    return f"{f:.2f}"


__all__ = [
    "CreditAmount",
    "ExpenseAmount",
    "as_credit",
    "as_expense",
    "fmt_amount",
    "parse_amount",
]
