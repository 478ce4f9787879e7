"""
Key-value access to the Antigravity state database.

The database belongs to Antigravity, which may be writing to it at the same
time. Every operation therefore opens its own connection and closes it
before returning; nothing is held open between calls.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from ...domain.errors import StorageIOError, StoreNotFoundError
from ...domain.models.snapshot import Snapshot
from .constants import ITEM_TABLE, STATE_DB_BACKUP_SUFFIX

logger = logging.getLogger("switchboard.state_db")


class StateDatabase:
    """
    Typed accessor over the single ``ItemTable(key, value)`` table.

    A missing database file raises ``StoreNotFoundError``; a file that exists
    but cannot be opened or queried raises ``StorageIOError``.
    """

    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self._timeout = timeout
        self._engine: Optional[Engine] = None

    def __repr__(self) -> str:
        return f"StateDatabase({str(self.db_path)!r})"

    @property
    def exists(self) -> bool:
        return self.db_path.is_file()

    @property
    def backup_path(self) -> Path:
        """Sibling backup file Antigravity keeps next to the database."""
        return self.db_path.with_name(self.db_path.name + STATE_DB_BACKUP_SUFFIX)

    def _get_engine(self) -> Engine:
        if self._engine is None:
            # SQLite URL - convert Windows backslashes to forward slashes
            database_url = f"sqlite:///{str(self.db_path).replace(chr(92), '/')}"
            self._engine = create_engine(
                database_url,
                echo=False,
                poolclass=NullPool,  # fresh connection per operation
                connect_args={
                    "check_same_thread": False,
                    "timeout": self._timeout,
                },
            )
        return self._engine

    @contextmanager
    def _connect(self) -> Generator[Connection, None, None]:
        """Open a short-lived transactional connection."""
        if not self.exists:
            raise StoreNotFoundError(f"State database not found: {self.db_path}")

        try:
            with self._get_engine().begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise StorageIOError(f"Failed to access state database ({self.db_path}): {e}") from e

    @staticmethod
    def _as_text(value) -> str:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode('utf-8', errors='replace')
        return value

    def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key`` or None."""
        with self._connect() as conn:
            row = conn.execute(
                text(f"SELECT value FROM {ITEM_TABLE} WHERE key = :key"),
                {"key": key},
            ).first()
        return None if row is None else self._as_text(row[0])

    def set(self, key: str, value: str) -> None:
        """Insert or replace ``key``."""
        with self._connect() as conn:
            conn.execute(
                text(f"INSERT OR REPLACE INTO {ITEM_TABLE} (key, value) VALUES (:key, :value)"),
                {"key": key, "value": value},
            )
        logger.debug(f"Set key '{key}' ({len(value)} chars)")

    def delete(self, key: str) -> int:
        """Delete ``key``; returns affected rows (0 if it was absent)."""
        with self._connect() as conn:
            result = conn.execute(
                text(f"DELETE FROM {ITEM_TABLE} WHERE key = :key"),
                {"key": key},
            )
            rows = result.rowcount or 0
        logger.debug(f"Deleted key '{key}' ({rows} rows)")
        return rows

    def rows(self) -> Dict[str, str]:
        """Read every key/value pair, ordered by key."""
        with self._connect() as conn:
            result = conn.execute(text(f"SELECT key, value FROM {ITEM_TABLE} ORDER BY key"))
            return {key: self._as_text(value) for key, value in result}

    def snapshot(self) -> Snapshot:
        """Take a snapshot with JSON-decoded values."""
        return Snapshot.from_rows(self.rows())

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
