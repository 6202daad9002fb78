"""Shared SQLAlchemy models registry for the household database.

Currently includes the household state document used by ``household_ledger``.
"""

from .household import Base, HouseholdState

__all__ = [
    "Base",
    "HouseholdState",
]
