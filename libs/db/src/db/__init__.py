"""db: shared database library (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``db.models.household`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.household import Base, HouseholdState

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "HouseholdState",
]
