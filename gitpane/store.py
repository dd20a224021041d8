"""SQLite preference store for gitpane."""

import json
import sqlite3
import threading
from pathlib import Path
from typing import Self

SAVED_REPOSITORIES_KEY = "saved_repositories"

_DB_LOCK = threading.Lock()


def _ensure_schema(conn: sqlite3.Connection) -> None:
    """Ensure the database schema exists."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS preferences (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        )
        """
    )
    conn.commit()


class PreferenceDB:
    """Context manager for preference database access."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock_acquired = False

    def __enter__(self) -> Self:
        _DB_LOCK.acquire()
        self._lock_acquired = True
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), timeout=5)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA busy_timeout=5000")
            _ensure_schema(self._conn)
            return self
        except Exception:
            if self._conn:
                self._conn.close()
                self._conn = None
            if self._lock_acquired:
                _DB_LOCK.release()
                self._lock_acquired = False
            raise

    def __exit__(self, *args: object) -> None:
        try:
            if self._conn:
                self._conn.commit()
                self._conn.close()
                self._conn = None
        finally:
            if self._lock_acquired:
                _DB_LOCK.release()
                self._lock_acquired = False

    @property
    def conn(self) -> sqlite3.Connection:
        """Get the connection (must be inside context)."""
        if self._conn is None:
            raise RuntimeError("PreferenceDB must be used as a context manager")
        return self._conn

    def get(self, key: str) -> object | None:
        row = self.conn.execute("SELECT value FROM preferences WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: object) -> None:
        self.conn.execute(
            """
            INSERT INTO preferences (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, json.dumps(value)),
        )


class PreferenceStore:
    """Key-value preferences persisted under the state directory."""

    def __init__(self, state_dir: Path) -> None:
        self.db_path = state_dir / "preferences.sqlite"

    def get_string_list(self, key: str) -> list[str]:
        with PreferenceDB(self.db_path) as db:
            value = db.get(key)
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]

    def set_string_list(self, key: str, values: list[str]) -> None:
        with PreferenceDB(self.db_path) as db:
            db.set(key, list(values))

    def saved_repositories(self) -> list[Path]:
        return [Path(item) for item in self.get_string_list(SAVED_REPOSITORIES_KEY)]

    def save_repositories(self, paths: list[Path]) -> None:
        self.set_string_list(SAVED_REPOSITORIES_KEY, [str(path) for path in paths])
