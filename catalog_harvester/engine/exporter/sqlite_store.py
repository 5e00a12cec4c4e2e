"""Key-value store persisted in a SQLite table of JSON blobs."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from .base import KeyValueStore, safe_name


class SQLiteKeyValueStore(KeyValueStore):
    """Persist values as JSON in ``<storage_dir>/key_value_stores/<store>.db``."""

    def __init__(self, storage_dir: Path, name: str, table: str = "records") -> None:
        super().__init__(name)
        self.path = storage_dir / "key_value_stores" / f"{safe_name(name, 'default')}.db"
        self.table = table
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path)
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )
        self.conn.commit()

    def put(self, key: str, value: Any) -> None:
        with self.conn:
            self.conn.execute(
                f"INSERT OR REPLACE INTO {self.table}(key, value, updated_at) VALUES (?, ?, datetime('now'))",
                (key, json.dumps(value, ensure_ascii=False)),
            )

    def get(self, key: str, default: Any = None) -> Any:
        row = self.conn.execute(f"SELECT value FROM {self.table} WHERE key = ?", (key,)).fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    def close(self) -> None:
        self.conn.close()


__all__ = ["SQLiteKeyValueStore"]
