"""Effective income for a period.

Each income-history entry describes the household's income "from this month
onwards, until superseded". For a period P the entry in force is the one with
the latest period on or before P. When every entry is later than P the
earliest entry is used; when there is no history at all the default income
configuration applies.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import IncomeComponents, IncomeConfig, IncomeHistoryEntry
from .periods import PeriodKey, latest_on_or_before


def _entry_period(entry: IncomeHistoryEntry) -> PeriodKey | None:
    return entry.period_key


def get_effective_income(
    period_key: PeriodKey,
    history: Iterable[IncomeHistoryEntry],
    default: IncomeConfig | None = None,
) -> IncomeComponents:
    """Return the income entry in force for ``period_key``."""

    entries = [e for e in history if _entry_period(e)]
    effective = latest_on_or_before(entries, period_key, period_of=_entry_period)
    if effective is not None:
        return effective
    if entries:
        return min(entries, key=lambda e: e.period_key or "")
    return default if default is not None else IncomeConfig()


def total_income_for(
    period_key: PeriodKey,
    history: Iterable[IncomeHistoryEntry],
    default: IncomeConfig | None = None,
) -> float:
    """Monthly income for ``period_key``, summed from the named components."""

    return get_effective_income(period_key, history, default).total


__all__ = ["get_effective_income", "total_income_for"]
