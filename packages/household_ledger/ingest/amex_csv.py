"""Reader for American Express statement CSV exports.

Two layouts are accepted:

- the plain export, whose first line is the column header;
- the "Enhanced Details" export, which puts a few human-readable preamble
  lines above the real header.

Required columns: ``Date``, ``Amount`` and a description column
(``Appears On Your Statement As`` preferred, else ``Description``). Optional
columns picked up when present: ``Reference``, ``Card Member``,
``Extended Details``.

Amounts keep the AmEx convention (positive = purchase, negative = credit);
the importer turns them into ledger signs. Rows without a parseable date, a
description or a parseable amount are skipped. A missing header raises
``csv.Error``.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from os import PathLike
from pathlib import Path
from typing import TextIO

from ..logging_setup import get_logger
from ..periods import PeriodKey, is_period_key

_logger = get_logger("household_ledger.ingest.amex_csv")

DATE_COLUMN = "Date"
AMOUNT_COLUMN = "Amount"
STATEMENT_AS_COLUMN = "Appears On Your Statement As"
DESCRIPTION_COLUMN = "Description"

# Statement repayment lines; they settle the card rather than spend on it.
STATEMENT_PAYMENT_PHRASE = "direct debit received - thank you"

_DAY_FIRST_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d/%m/%y", "%d-%m-%Y")
_MONTH_FIRST_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y")


@dataclass(frozen=True, slots=True)
class ImportedRecord:
    """One statement line as read from the CSV, before sign normalization."""

    date: str
    amount: float
    description: str
    merchant: str | None = None
    reference: str | None = None
    card_member: str | None = None
    memo: str | None = None
    period_key: PeriodKey | None = None
    category: str | None = None


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = re.sub(r"\s+", " ", value.replace("\r", " ").replace("\n", " ")).strip()
    return cleaned or None


def parse_statement_date(value: str | None, *, day_first: bool = True) -> str | None:
    """Normalize a statement date to ``YYYY-MM-DD``; ``None`` if unparseable."""

    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    first = s.split()[0]
    for fmt in _DAY_FIRST_FORMATS if day_first else _MONTH_FIRST_FORMATS:
        try:
            return datetime.strptime(first, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def parse_statement_amount(raw: str | None) -> Decimal:
    """Parse ``"1,234.56"``, ``"$(12.00)"``, ``"-$5"`` and similar.

    Parentheses and a leading minus both mean negative. Raises ``ValueError``
    for empty or non-numeric input.
    """

    if raw is None:
        raise ValueError("amount is required")
    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")
    negative = False
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith("$"):
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break
    s = s.replace(",", "").strip()
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return -abs(d) if negative else d


def is_statement_payment(description: str | None) -> bool:
    return STATEMENT_PAYMENT_PHRASE in (description or "").lower()


def _is_header(line: str) -> bool:
    cells = {c.strip() for c in next(csv.reader([line]), [])}
    return DATE_COLUMN in cells and AMOUNT_COLUMN in cells


def _dict_reader(text: str) -> csv.DictReader:
    """Build a ``DictReader`` positioned at the real header inside ``text``."""

    # keepends preserves newlines inside quoted fields when rejoined.
    lines = text.splitlines(keepends=True)
    for idx, line in enumerate(lines):
        if line.strip() and _is_header(line):
            reader = csv.DictReader(io.StringIO("".join(lines[idx:])))
            break
    else:
        raise csv.Error(
            f"AmEx CSV: could not locate a header row with {DATE_COLUMN!r} and "
            f"{AMOUNT_COLUMN!r} columns"
        )

    headers = {h.strip() for h in reader.fieldnames or ()}
    if STATEMENT_AS_COLUMN not in headers and DESCRIPTION_COLUMN not in headers:
        raise csv.Error(
            f"AmEx CSV: missing description column; expected {STATEMENT_AS_COLUMN!r} "
            f"or {DESCRIPTION_COLUMN!r}. Found: {', '.join(sorted(headers))}"
        )
    return reader


def _rows(reader: csv.DictReader) -> Iterator[dict[str, str]]:
    for row in reader:
        # DictReader collects surplus cells under a None key.
        yield {k.strip(): (v or "") for k, v in row.items() if k is not None}


def to_records(
    rows: Iterable[Mapping[str, str]],
    *,
    period_key: PeriodKey | None = None,
    day_first: bool = True,
    drop_statement_payments: bool = True,
) -> list[ImportedRecord]:
    """Map CSV rows (header name -> cell) to :class:`ImportedRecord` items."""

    out: list[ImportedRecord] = []
    dropped_payments = 0
    skipped = 0
    for row in rows:
        statement_as = _clean_text(row.get(STATEMENT_AS_COLUMN))
        description = statement_as or _clean_text(row.get(DESCRIPTION_COLUMN))
        date = parse_statement_date(row.get(DATE_COLUMN), day_first=day_first)
        if not date or not description:
            skipped += 1
            continue
        try:
            amount = parse_statement_amount(row.get(AMOUNT_COLUMN))
        except ValueError:
            skipped += 1
            continue
        if drop_statement_payments and is_statement_payment(description):
            dropped_payments += 1
            continue
        out.append(
            ImportedRecord(
                date=date,
                amount=float(amount),
                description=description,
                merchant=statement_as or description,
                reference=_clean_text(row.get("Reference")),
                card_member=_clean_text(row.get("Card Member")),
                memo=_clean_text(row.get("Extended Details")),
                period_key=period_key,
            )
        )
    if skipped or dropped_payments:
        _logger.debug(
            "skipped %d unparseable row(s), dropped %d statement payment(s)",
            skipped,
            dropped_payments,
        )
    return out


def read_amex_csv(
    source: str | PathLike[str] | TextIO,
    *,
    period_key: PeriodKey | None = None,
    day_first: bool = True,
    drop_statement_payments: bool = True,
) -> list[ImportedRecord]:
    """Read an AmEx CSV export from a path or an open text stream.

    ``period_key`` is the statement month; when given, every record is
    attributed to it instead of the month of its own date.
    """

    if period_key is not None and not is_period_key(period_key):
        raise ValueError(f"statement month must be YYYY-MM, got {period_key!r}")

    if isinstance(source, (str, PathLike)):
        with Path(source).open(encoding="utf-8-sig", newline="") as f:
            text = f.read()
    else:
        text = source.read()

    reader = _dict_reader(text)
    return to_records(
        _rows(reader),
        period_key=period_key,
        day_first=day_first,
        drop_statement_payments=drop_statement_payments,
    )


__all__ = [
    "ImportedRecord",
    "STATEMENT_PAYMENT_PHRASE",
    "is_statement_payment",
    "parse_statement_amount",
    "parse_statement_date",
    "read_amex_csv",
    "to_records",
]
