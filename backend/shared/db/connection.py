"""SQLite database connection and schema management."""

import os
import sqlite3
from pathlib import Path

import structlog

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

# rowid is kept stable across updates (UPDATE, never INSERT OR REPLACE),
# so ORDER BY rowid is document insertion order.
_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    path TEXT PRIMARY KEY,
    collection TEXT NOT NULL,
    version INTEGER NOT NULL,
    data TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_documents_collection
    ON documents (collection);
"""


class Database:
    """SQLite database wrapper with schema management."""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        """Open the database, apply pragmas, create schema, and harden file permissions."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA_SQL)

        self._harden_permissions()
        logger.info("document database opened", path=self._path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _harden_permissions(self) -> None:
        """Set owner-only permissions on the DB file and its WAL/SHM siblings (best effort)."""
        if os.name != "posix" or self._path == ":memory:":  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if p.exists():
                try:
                    p.chmod(_DB_FILE_PERMISSIONS)
                except OSError:
                    logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
