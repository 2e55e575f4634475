"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths for the ligalive package and the
    in-memory Mongo helpers, and a guard so no test reaches a real database.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_TESTS_DIR = _THIS_FILE.parent
_BACKEND_DIR = _THIS_FILE.parents[1]

for candidate in (str(_BACKEND_DIR), str(_TESTS_DIR)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)


@pytest.fixture(autouse=True)
def _no_real_database(monkeypatch):
    import ligalive.database as _db

    # Tests install a FakeDB explicitly; anything else fails loudly.
    monkeypatch.setattr(_db, "db", None, raising=False)
    monkeypatch.setattr(_db, "client", None, raising=False)
