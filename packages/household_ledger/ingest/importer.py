"""Turn imported statement records into ledger transactions.

Classification order for each record:

1. a card repayment (see :data:`CARD_PAYMENT_PHRASES`) becomes a positive
   ``payment``;
2. a positive raw amount (a purchase) becomes a negative ``expense``;
3. a negative raw amount (a credit) becomes a positive ``refund``;
4. a zero amount is skipped.

Records whose composite key (:func:`household_ledger.duplicates.transaction_key`)
already exists in the stored transactions, or earlier in the same batch, are
counted as duplicates and skipped.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from ..amounts import as_credit, as_expense
from ..categorization import DEFAULT_CATEGORY_RULES, categorize
from ..duplicates import transaction_key
from ..logging_setup import get_logger
from ..models import CategoryRule, Transaction
from .amex_csv import ImportedRecord

_logger = get_logger("household_ledger.ingest.importer")

IMPORT_SOURCE = "amex_csv"

CARD_PAYMENT_PHRASES: tuple[str, ...] = (
    "direct debit received - thank you",
    "payment received - thank you",
    "payment thank you",
    "direct debit received",
    "amex payment",
    "american express payment",
)

type Categorizer = Callable[[str, Sequence[CategoryRule]], str]


def is_card_payment(description: str | None) -> bool:
    text = (description or "").lower()
    return any(p in text for p in CARD_PAYMENT_PHRASES)


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of one import: the new list plus a summary for display."""

    transactions: tuple[Transaction, ...]
    added: tuple[Transaction, ...]
    duplicates_skipped: int
    zero_skipped: int
    purchases: float
    refunds: float
    payments: float

    @property
    def imported(self) -> int:
        return len(self.added)

    @property
    def net_spend(self) -> float:
        return self.purchases - self.refunds


def _new_id() -> str:
    return str(uuid.uuid4())


def _to_transaction(
    record: ImportedRecord,
    *,
    rules: Sequence[CategoryRule],
    categorizer: Categorizer,
    id_factory: Callable[[], str],
    imported_at: str,
) -> Transaction | None:
    raw = record.amount
    if is_card_payment(record.description):
        kind, amount = "payment", as_credit(raw)
    elif raw > 0:
        kind, amount = "expense", as_expense(raw)
    elif raw < 0:
        kind, amount = "refund", as_credit(raw)
    else:
        return None

    return Transaction.model_validate(
        {
            "id": id_factory(),
            "date": record.date,
            "periodKey": record.period_key,
            "amount": amount,
            "kind": kind,
            "item": record.description,
            "description": record.description,
            "merchant": record.merchant or record.description,
            "category": record.category or categorizer(record.description, rules),
            "reference": record.reference,
            "memo": record.memo,
            "cardMember": record.card_member,
            "source": IMPORT_SOURCE,
            "isManualCategory": False,
            "importedAt": imported_at,
        }
    )


def import_transactions(
    existing: Sequence[Transaction],
    records: Iterable[ImportedRecord],
    *,
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
    categorizer: Categorizer = categorize,
    id_factory: Callable[[], str] = _new_id,
    now: datetime | None = None,
) -> ImportResult:
    """Normalize ``records`` and prepend the new ones to ``existing``.

    ``existing`` is never mutated. The returned ``transactions`` hold the new
    transactions first, in record order, followed by ``existing``.
    """

    imported_at = (now or datetime.now(UTC)).isoformat()
    keys = {transaction_key(tx) for tx in existing}
    added: list[Transaction] = []
    duplicates = 0
    zero = 0

    for record in records:
        tx = _to_transaction(
            record,
            rules=rules,
            categorizer=categorizer,
            id_factory=id_factory,
            imported_at=imported_at,
        )
        if tx is None:
            zero += 1
            continue
        key = transaction_key(tx)
        if key in keys:
            duplicates += 1
            continue
        keys.add(key)
        added.append(tx)

    result = ImportResult(
        transactions=(*added, *existing),
        added=tuple(added),
        duplicates_skipped=duplicates,
        zero_skipped=zero,
        purchases=sum((abs(t.amount) for t in added if t.kind == "expense"), 0.0),
        refunds=sum((t.amount for t in added if t.kind == "refund"), 0.0),
        payments=sum((t.amount for t in added if t.kind == "payment"), 0.0),
    )
    _logger.info(
        "imported %d transaction(s), skipped %d duplicate(s)",
        result.imported,
        result.duplicates_skipped,
    )
    return result


__all__ = [
    "CARD_PAYMENT_PHRASES",
    "IMPORT_SOURCE",
    "ImportResult",
    "import_transactions",
    "is_card_payment",
]
