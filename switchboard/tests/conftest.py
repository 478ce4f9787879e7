"""
Shared fixtures for the Switchboard test suite.
"""

import sqlite3
from pathlib import Path

import pytest

from switchboard.src.infrastructure.storage.account_backups import AccountBackupRepository
from switchboard.src.infrastructure.target.state_db import StateDatabase
from switchboard.tests.helpers import FakeProcessController


@pytest.fixture(autouse=True)
def data_home(tmp_path, monkeypatch):
    """Point the per-user data directory at a temporary folder."""
    home = tmp_path / "switchboard-home"
    monkeypatch.setenv("SWITCHBOARD_HOME", str(home))
    return home


@pytest.fixture
def state_db_path(tmp_path) -> Path:
    """An empty state.vscdb with Antigravity's table layout."""
    db_dir = tmp_path / "globalStorage"
    db_dir.mkdir()
    path = db_dir / "state.vscdb"
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def database(state_db_path):
    db = StateDatabase(state_db_path)
    yield db
    db.dispose()


@pytest.fixture
def seed(state_db_path):
    """Write rows directly, bypassing the code under test."""
    def _seed(rows):
        conn = sqlite3.connect(state_db_path)
        try:
            conn.executemany(
                "INSERT OR REPLACE INTO ItemTable (key, value) VALUES (?, ?)",
                list(rows.items()),
            )
            conn.commit()
        finally:
            conn.close()
    return _seed


@pytest.fixture
def backups(tmp_path):
    return AccountBackupRepository(tmp_path / "accounts")


@pytest.fixture
def process_controller():
    return FakeProcessController(running=True)
