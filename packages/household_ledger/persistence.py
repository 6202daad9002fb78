"""Loading and saving household state.

Two stores share one protocol:

- :class:`JsonFileStore`: a local JSON document (offline cache, fixtures).
- :class:`SqlSnapshotStore`: one row of the ``household_state`` table owned
  by ``libs/db``, keyed by the SHA-256 of the household PIN.

Both return a migrated :class:`~household_ledger.models.LedgerSnapshot` from
``load()``; stored documents are brought up to date at this boundary and the
engine never sees legacy shapes. ``save()`` writes the camelCase state shape.
"""

from __future__ import annotations

import hashlib
import json
import os
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy.orm import Session

from db.client import init_schema, session_scope
from db.models.household import HouseholdState

from .logging_setup import get_logger
from .migrations import migrate_snapshot
from .models import LedgerSnapshot

_logger = get_logger("household_ledger.persistence")


class SnapshotStore(Protocol):
    def load_state(self) -> dict[str, Any]: ...

    def load(self, *, today: date | None = None) -> LedgerSnapshot: ...

    def save(self, snapshot: LedgerSnapshot) -> None: ...


def household_key(pin: str) -> str:
    """Stable storage key for a household PIN (hex SHA-256)."""

    value = (pin or "").strip()
    if not value:
        raise ValueError("household PIN must not be empty")
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _require_mapping(data: Any, origin: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{origin}: stored state must be a JSON object, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# JSON file
# ---------------------------------------------------------------------------


class JsonFileStore:
    """Household state kept in a single JSON file. A missing file is empty state."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load_state(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            return _require_mapping(json.load(f), str(self.path))

    def load(self, *, today: date | None = None) -> LedgerSnapshot:
        return migrate_snapshot(self.load_state(), today=today)

    def save(self, snapshot: LedgerSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(snapshot.to_state(), f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp, self.path)
        _logger.debug("saved %d transaction(s) to %s", len(snapshot.transactions), self.path)


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------


def _dialect_insert(session: Session):
    name = session.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"unsupported database dialect for upsert: {name}")
    return insert


def upsert_state(session: Session, *, key: str, state: dict[str, Any], schema_version: int) -> None:
    """Insert or replace the state document stored under ``key``."""

    insert = _dialect_insert(session)
    now = datetime.now(UTC)
    stmt = insert(HouseholdState).values(
        household_key=key,
        state=state,
        schema_version=schema_version,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[HouseholdState.household_key],
        set_={
            "state": stmt.excluded.state,
            "schema_version": stmt.excluded.schema_version,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    session.execute(stmt)


class SqlSnapshotStore:
    """Household state stored in the shared database.

    ``database_url`` falls back to ``DATABASE_URL``. The table is created on
    first use when missing.
    """

    def __init__(self, pin: str, *, database_url: str | None = None) -> None:
        self.key = household_key(pin)
        self.database_url = database_url
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            init_schema(database_url=self.database_url)
            self._schema_ready = True

    def load_state(self) -> dict[str, Any]:
        self._ensure_schema()
        with session_scope(database_url=self.database_url) as session:
            row = session.get(HouseholdState, self.key)
            if row is None:
                return {}
            return dict(_require_mapping(row.state, "household_state"))

    def load(self, *, today: date | None = None) -> LedgerSnapshot:
        return migrate_snapshot(self.load_state(), today=today)

    def save(self, snapshot: LedgerSnapshot) -> None:
        self._ensure_schema()
        with session_scope(database_url=self.database_url) as session:
            upsert_state(
                session,
                key=self.key,
                state=snapshot.to_state(),
                schema_version=snapshot.schema_version,
            )
        _logger.debug("saved %d transaction(s) for household", len(snapshot.transactions))


__all__ = [
    "JsonFileStore",
    "SnapshotStore",
    "SqlSnapshotStore",
    "household_key",
    "upsert_state",
]
