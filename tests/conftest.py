"""Pytest configuration for test isolation.

The CLI reads ``DATABASE_URL``, ``HOUSEHOLD_PIN`` and
``HOUSEHOLD_LEDGER_LOG_LEVEL`` from the environment and from a ``.env`` in
the working directory, and the ``db`` library caches one engine per URL.
Any of these leaking between tests makes results depend on test order.

To keep tests hermetic, an autouse fixture clears the variables, runs each
test from its own temporary directory, and resets logging and cached
engines afterwards.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines
from household_ledger.logging_setup import reset_logging

_ENV_VARS = ("DATABASE_URL", "HOUSEHOLD_PIN", "HOUSEHOLD_LEDGER_LOG_LEVEL")


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Give every test a clean environment and working directory."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv() writes os.environ directly, outside monkeypatch's undo log.
    for name in _ENV_VARS:
        os.environ.pop(name, None)
    reset_logging()
    dispose_engines()
