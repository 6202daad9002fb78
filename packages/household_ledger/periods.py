"""Period keys (``YYYY-MM``) and calendar-month helpers.

Period keys are plain strings; zero padding makes lexicographic order equal
chronological order, so comparisons throughout the engine are string
comparisons.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Any

type PeriodKey = str

_PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def is_period_key(value: Any) -> bool:
    return isinstance(value, str) and bool(_PERIOD_RE.fullmatch(value))


def _require_period(value: str) -> tuple[int, int]:
    if not is_period_key(value):
        raise ValueError(f"invalid period key (expected YYYY-MM): {value!r}")
    year, month = value.split("-")
    return int(year), int(month)


def get_period_key(tx_or_date: Any) -> PeriodKey | None:
    """Resolve the ``YYYY-MM`` period of a transaction or a raw date string.

    Strings are treated as dates and truncated to seven characters. Records
    (mappings or model objects) prefer an explicit ``period_key``/``periodKey``
    and otherwise fall back to the first seven characters of ``date``.
    Returns ``None`` when no date information exists.
    """

    if tx_or_date is None:
        return None
    if isinstance(tx_or_date, str):
        return tx_or_date[:7] or None

    if isinstance(tx_or_date, Mapping):
        explicit = tx_or_date.get("period_key") or tx_or_date.get("periodKey")
        raw_date = tx_or_date.get("date")
    else:
        explicit = getattr(tx_or_date, "period_key", None)
        raw_date = getattr(tx_or_date, "date", None)

    if explicit:
        return str(explicit)
    if raw_date:
        return str(raw_date)[:7] or None
    return None


def latest_on_or_before[T](
    items: Iterable[T],
    period_key: PeriodKey,
    *,
    period_of: Callable[[T], PeriodKey | None],
) -> T | None:
    """Return the item whose period is the latest one not after ``period_key``.

    Items without a period are ignored. Ties keep the first item seen. This is
    the "in force from this month until superseded" rule shared by income
    history and debt rate schedules.
    """

    best: T | None = None
    best_key: PeriodKey | None = None
    for it in items:
        key = period_of(it)
        if not key or key > period_key:
            continue
        if best_key is None or key > best_key:
            best, best_key = it, key
    return best


def current_month(today: date | None = None) -> PeriodKey:
    d = today or date.today()
    return f"{d.year:04d}-{d.month:02d}"


def next_month(key: PeriodKey) -> PeriodKey:
    year, month = _require_period(key)
    if month == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{month + 1:02d}"


def previous_month(key: PeriodKey) -> PeriodKey:
    year, month = _require_period(key)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def month_range(start: PeriodKey, end: PeriodKey) -> list[PeriodKey]:
    """Return every period from ``start`` to ``end`` inclusive.

    An empty list is returned when ``start`` is after ``end``.
    """

    _require_period(start)
    _require_period(end)
    months: list[PeriodKey] = []
    current = start
    while current <= end:
        months.append(current)
        current = next_month(current)
    return months


__all__ = [
    "PeriodKey",
    "current_month",
    "get_period_key",
    "is_period_key",
    "latest_on_or_before",
    "month_range",
    "next_month",
    "previous_month",
]
