"""Statement ingestion: CSV reading and normalization into ledger transactions."""

from .amex_csv import ImportedRecord, read_amex_csv
from .importer import ImportResult, import_transactions, is_card_payment

__all__ = [
    "ImportResult",
    "ImportedRecord",
    "import_transactions",
    "is_card_payment",
    "read_amex_csv",
]
