"""SQLiteStore — one story snapshot per PR in a local database file.

Unlike JsonFileStore it keeps every PR that was ever analysed, so switching
between PRs in cache mode never needs the provider again.

Schema:
  stories  — one row per PR key; saving again replaces the row.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone

from prstory_store.base import BaseStore, StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS stories (
    pr_key          TEXT PRIMARY KEY,
    saved_at        TEXT NOT NULL,
    snapshot_json   TEXT NOT NULL
);
"""


class SQLiteStore(BaseStore):
    """Stores story snapshots in a SQLite database file.

    The database file path defaults to `.prstory.db` in the current working
    directory. Configure via .prstory.yml: `store: sqlite`, `store_path: ...`.
    The connection is shared with the executor's worker threads, so it is
    opened with ``check_same_thread=False`` and guarded by a lock.
    """

    def __init__(self, db_path: str = ".prstory.db"):
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.DatabaseError as e:
            raise StoreError(f"Cannot open story database {db_path}: {e}") from e

    def save(self, key: str, snapshot: dict) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO stories (pr_key, saved_at, snapshot_json) VALUES (?, ?, ?)
                ON CONFLICT(pr_key) DO UPDATE SET
                  saved_at = excluded.saved_at,
                  snapshot_json = excluded.snapshot_json
                """,
                (key, datetime.now(timezone.utc).isoformat(), json.dumps(dict(snapshot, pr=key))),
            )
            self._conn.commit()

    def load(self, key: str) -> dict | None:
        with self._lock:
            row = self._conn.execute("SELECT snapshot_json FROM stories WHERE pr_key=?", (key,)).fetchone()
        if row is None:
            return None
        try:
            data = json.loads(row["snapshot_json"])
        except json.JSONDecodeError as e:
            raise StoreError(f"Snapshot for {key} is corrupt: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Snapshot for {key} is not a JSON object")
        return data

    def list_keys(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT pr_key FROM stories ORDER BY saved_at DESC").fetchall()
        return [r["pr_key"] for r in rows]

    def close(self) -> None:
        self._conn.close()
