"""CLI for the ``household_ledger`` package.

Each command has a plain handler (``cmd_*``) returning a process exit code and
a Typer wrapper. Environment variables (``DATABASE_URL``, ``HOUSEHOLD_PIN``,
``HOUSEHOLD_LEDGER_LOG_LEVEL``) are loaded from a local ``.env`` using
``python-dotenv`` without overriding the real environment. Business logic
lives in ``household_ledger.api`` and related modules.

Household state comes from ``--snapshot PATH`` (a JSON file) or, when that is
omitted, from the SQL store selected by ``--database-url``/``--pin`` (falling
back to ``DATABASE_URL``/``HOUSEHOLD_PIN``).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import typer
from dotenv import load_dotenv

from .amounts import fmt_amount
from .logging_setup import configure_logging
from .persistence import JsonFileStore, SnapshotStore, SqlSnapshotStore

PIN_ENV = "HOUSEHOLD_PIN"


# ---- Store selection ---------------------------------------------------------


def open_store(
    snapshot_path: Path | None,
    *,
    database_url: str | None = None,
    pin: str | None = None,
) -> SnapshotStore:
    """Pick the JSON file store when a path is given, else the SQL store."""

    if snapshot_path is not None:
        return JsonFileStore(snapshot_path)
    pin = pin or os.getenv(PIN_ENV)
    if not pin:
        raise RuntimeError(f"no household selected; pass --snapshot or set {PIN_ENV}")
    return SqlSnapshotStore(pin, database_url=database_url)


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


# ---- Command handlers ----------------------------------------------------------


def cmd_ledger(store: SnapshotStore) -> int:
    """Print one tab-separated line per ledger row, oldest period first."""

    from .api import get_ledger

    try:
        rows = get_ledger(store.load())
    except Exception as e:
        return _fail(f"failed to build ledger: {e}")

    print("period\tincome\texpenses\trecurring\tdebt\tnet\tsavings_rate\ttransactions")
    for r in rows:
        print(
            "\t".join(
                [
                    r.month_key,
                    fmt_amount(r.total_income),
                    fmt_amount(r.total_expenses),
                    fmt_amount(r.recurring_spend),
                    fmt_amount(r.debt_payments),
                    fmt_amount(r.net_savings),
                    f"{r.savings_rate:.1f}",
                    str(r.transaction_count),
                ]
            )
        )
    return 0


def cmd_month(store: SnapshotStore, period: str) -> int:
    """Print the merged transactions of one month, newest first."""

    from .api import get_merged_transactions
    from .periods import is_period_key

    if not is_period_key(period):
        return _fail(f"period must be YYYY-MM, got {period!r}")
    try:
        merged = get_merged_transactions(store.load(), period)
    except Exception as e:
        return _fail(f"failed to load transactions: {e}")

    for tx in merged:
        marker = "*" if tx.is_virtual else ""
        print(
            f"{tx.date or ''}\t{tx.id or ''}{marker}\t{fmt_amount(tx.amount)}\t"
            f"{tx.category or ''}\t{tx.text}"
        )
    return 0


def cmd_income(store: SnapshotStore, period: str) -> int:
    from .api import get_effective_income
    from .periods import is_period_key

    if not is_period_key(period):
        return _fail(f"period must be YYYY-MM, got {period!r}")
    try:
        income = get_effective_income(store.load(), period)
    except Exception as e:
        return _fail(f"failed to resolve income: {e}")

    print(f"salary_eric\t{fmt_amount(income.salary_eric)}")
    print(f"salary_rebecca\t{fmt_amount(income.salary_rebecca)}")
    print(f"other\t{fmt_amount(income.other)}")
    print(f"total\t{fmt_amount(income.total)}")
    return 0


def cmd_debts(store: SnapshotStore, period: str) -> int:
    """Print each debt with the interest rate in force for ``period``."""

    from .periods import is_period_key

    if not is_period_key(period):
        return _fail(f"period must be YYYY-MM, got {period!r}")
    try:
        debts = store.load().debts
    except Exception as e:
        return _fail(f"failed to load debts: {e}")

    print("debt\tbalance\trepayment\trate")
    for d in debts:
        print(
            f"{d.name or d.id or ''}\t{fmt_amount(d.current_balance)}\t"
            f"{fmt_amount(d.monthly_repayment)}\t{d.rate_for(period):.2f}"
        )
    return 0


def cmd_import_amex(store: SnapshotStore, csv_path: Path, statement_month: str) -> int:
    """Import an AmEx CSV into the stored household state and print a summary."""

    import csv

    from .api import HouseholdLedger
    from .ingest.amex_csv import read_amex_csv
    from .periods import is_period_key

    if not is_period_key(statement_month):
        return _fail(f"statement month must be YYYY-MM, got {statement_month!r}")

    try:
        records = read_amex_csv(csv_path, period_key=statement_month)
    except FileNotFoundError:
        return _fail(f"File not found: {csv_path}")
    except PermissionError:
        return _fail(f"Permission denied: {csv_path}")
    except csv.Error as e:
        return _fail(f"Failed to parse CSV: {e}")

    if not records:
        return _fail(f"no valid rows found in {csv_path}")

    try:
        book, result = HouseholdLedger(store.load()).import_records(records)
        store.save(book.snapshot)
    except Exception as e:
        return _fail(f"import failed: {e}")

    print(f"Imported: {result.imported}")
    print(f"Duplicates skipped: {result.duplicates_skipped}")
    print(f"Purchases: {fmt_amount(result.purchases)}")
    print(f"Refunds: {fmt_amount(result.refunds)}")
    print(f"Payments: {fmt_amount(result.payments)}")
    print(f"Net spend: {fmt_amount(result.net_spend)}")
    return 0


def cmd_migrate(store: SnapshotStore) -> int:
    """Run pending state migrations and write the result back."""

    try:
        snapshot = store.load()
        store.save(snapshot)
    except Exception as e:
        return _fail(f"migration failed: {e}")
    print(f"Schema version: {snapshot.schema_version}")
    return 0


def cmd_check(store: SnapshotStore, period: str) -> int:
    """Cross-check a month's ledger row against its transactions."""

    from .api import HouseholdLedger
    from .periods import is_period_key

    if not is_period_key(period):
        return _fail(f"period must be YYYY-MM, got {period!r}")
    try:
        report = HouseholdLedger(store.load()).check(period)
    except Exception as e:
        return _fail(f"consistency check failed: {e}")

    print(f"transactions\t{fmt_amount(report.calculated_spending)}")
    print(f"ledger\t{fmt_amount(report.ledger_expenses)}")
    print(f"delta\t{fmt_amount(report.delta)}")
    if report.has_mismatch:
        print(f"MISMATCH in {period}", file=sys.stderr)
        return 1
    print("OK")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Household ledger: monthly income, spending and savings from stored "
        "household state. Loads DATABASE_URL and HOUSEHOLD_PIN from a local .env."
    ),
)

_SNAPSHOT_HELP = "Read/write household state from this JSON file instead of the database."
_DATABASE_URL_HELP = "Override DATABASE_URL (falls back to env var)."
_PIN_HELP = f"Household PIN for the database store (falls back to {PIN_ENV})."
_PERIOD_HELP = "Period as YYYY-MM."


def _store_or_exit(
    snapshot: Path | None, database_url: str | None, pin: str | None
) -> SnapshotStore:
    try:
        return open_store(snapshot, database_url=database_url, pin=pin)
    except (RuntimeError, ValueError) as e:
        raise typer.Exit(_fail(str(e))) from e


@app.command("ledger")
def ledger_cmd(
    snapshot: Path | None = typer.Option(None, "--snapshot", help=_SNAPSHOT_HELP),
    database_url: str | None = typer.Option(None, "--database-url", help=_DATABASE_URL_HELP),
    pin: str | None = typer.Option(None, "--pin", help=_PIN_HELP),
) -> None:
    """Print the monthly ledger."""

    store = _store_or_exit(snapshot, database_url, pin)
    raise typer.Exit(cmd_ledger(store))


@app.command("month")
def month_cmd(
    period: str = typer.Option(..., "--period", help=_PERIOD_HELP),
    snapshot: Path | None = typer.Option(None, "--snapshot", help=_SNAPSHOT_HELP),
    database_url: str | None = typer.Option(None, "--database-url", help=_DATABASE_URL_HELP),
    pin: str | None = typer.Option(None, "--pin", help=_PIN_HELP),
) -> None:
    """Print the merged transactions for one month (virtual ones marked *)."""

    store = _store_or_exit(snapshot, database_url, pin)
    raise typer.Exit(cmd_month(store, period))


@app.command("income")
def income_cmd(
    period: str = typer.Option(..., "--period", help=_PERIOD_HELP),
    snapshot: Path | None = typer.Option(None, "--snapshot", help=_SNAPSHOT_HELP),
    database_url: str | None = typer.Option(None, "--database-url", help=_DATABASE_URL_HELP),
    pin: str | None = typer.Option(None, "--pin", help=_PIN_HELP),
) -> None:
    """Print the income configuration in force for one month."""

    store = _store_or_exit(snapshot, database_url, pin)
    raise typer.Exit(cmd_income(store, period))


@app.command("debts")
def debts_cmd(
    period: str = typer.Option(..., "--period", help=_PERIOD_HELP),
    snapshot: Path | None = typer.Option(None, "--snapshot", help=_SNAPSHOT_HELP),
    database_url: str | None = typer.Option(None, "--database-url", help=_DATABASE_URL_HELP),
    pin: str | None = typer.Option(None, "--pin", help=_PIN_HELP),
) -> None:
    """Print debts with the interest rate in force for one month."""

    store = _store_or_exit(snapshot, database_url, pin)
    raise typer.Exit(cmd_debts(store, period))


@app.command("import-amex")
def import_amex_cmd(
    csv_path: Path = typer.Option(
        ...,
        "--csv-path",
        help="AmEx CSV export to import.",
        dir_okay=False,
        file_okay=True,
        exists=False,  # the handler reports missing files itself
    ),
    statement_month: str = typer.Option(
        ..., "--statement-month", help="Statement month as YYYY-MM."
    ),
    snapshot: Path | None = typer.Option(None, "--snapshot", help=_SNAPSHOT_HELP),
    database_url: str | None = typer.Option(None, "--database-url", help=_DATABASE_URL_HELP),
    pin: str | None = typer.Option(None, "--pin", help=_PIN_HELP),
) -> None:
    """Import an AmEx statement CSV, skipping transactions already stored."""

    store = _store_or_exit(snapshot, database_url, pin)
    raise typer.Exit(cmd_import_amex(store, csv_path, statement_month))


@app.command("migrate")
def migrate_cmd(
    snapshot: Path | None = typer.Option(None, "--snapshot", help=_SNAPSHOT_HELP),
    database_url: str | None = typer.Option(None, "--database-url", help=_DATABASE_URL_HELP),
    pin: str | None = typer.Option(None, "--pin", help=_PIN_HELP),
) -> None:
    """Bring stored household state to the current schema."""

    store = _store_or_exit(snapshot, database_url, pin)
    raise typer.Exit(cmd_migrate(store))


@app.command("check")
def check_cmd(
    period: str = typer.Option(..., "--period", help=_PERIOD_HELP),
    snapshot: Path | None = typer.Option(None, "--snapshot", help=_SNAPSHOT_HELP),
    database_url: str | None = typer.Option(None, "--database-url", help=_DATABASE_URL_HELP),
    pin: str | None = typer.Option(None, "--pin", help=_PIN_HELP),
) -> None:
    """Consistency check for one month; exits 1 on mismatch."""

    store = _store_or_exit(snapshot, database_url, pin)
    raise typer.Exit(cmd_check(store, period))


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
