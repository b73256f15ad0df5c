"""SQLite persistence layer for kinai.

KinaiDB keeps the two record collections (patients, sessions) as JSON text
blobs in a single key-value table:
- Full-collection overwrite on every save (no partial writes)
- Absent or unparseable data reads back as an empty collection
- A file whose schema was never initialized reads back as empty
"""

from __future__ import annotations

import json
import sqlite3
import sys
from datetime import datetime, timezone

from kinai.models import Patient, Session

PATIENTS_KEY = "kinai_patients"
SESSIONS_KEY = "kinai_sessions"

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class KinaiDB:
    """SQLite-backed store for the patient and session collections."""

    def __init__(self, db_path: str = "kinai.db"):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")

    def init_schema(self) -> None:
        """Create the key-value table (IF NOT EXISTS)."""
        self.conn.executescript(_SCHEMA_SQL)

    def _has_schema(self) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'kv_store'"
        ).fetchone()
        return row is not None

    def get_text(self, key: str) -> str | None:
        """Return the raw stored text for a key, or None if never written."""
        if not self._has_schema():
            return None
        row = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_text(self, key: str, value: str) -> None:
        """Overwrite the stored text for a key. Committed before returning."""
        now = datetime.now(timezone.utc).isoformat()
        with self.conn:
            self.conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value, now),
            )

    def _load_list(self, key: str) -> list[dict]:
        raw = self.get_text(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            print(f"Warning: stored '{key}' is not valid JSON, starting empty.", file=sys.stderr)
            return []
        if not isinstance(data, list):
            print(f"Warning: stored '{key}' is not a list, starting empty.", file=sys.stderr)
            return []
        return [item for item in data if isinstance(item, dict)]

    def _load_records(self, key: str, record_cls) -> list:
        records = []
        for item in self._load_list(key):
            try:
                records.append(record_cls.from_dict(item))
            except (TypeError, ValueError, OverflowError) as e:
                print(f"Warning: skipping malformed record in '{key}': {e}", file=sys.stderr)
        return records

    def load_patients(self) -> list[Patient]:
        return self._load_records(PATIENTS_KEY, Patient)

    def load_sessions(self) -> list[Session]:
        return self._load_records(SESSIONS_KEY, Session)

    def load(self) -> tuple[list[Patient], list[Session]]:
        """Read both collections. Never raises for missing or corrupt data."""
        return self.load_patients(), self.load_sessions()

    def save_patients(self, patients: list[Patient]) -> None:
        self.set_text(PATIENTS_KEY, json.dumps([p.to_dict() for p in patients], ensure_ascii=False))

    def save_sessions(self, sessions: list[Session]) -> None:
        self.set_text(SESSIONS_KEY, json.dumps([s.to_dict() for s in sessions], ensure_ascii=False))

    def summary(self) -> dict[str, int]:
        """Return record counts per collection."""
        patients, sessions = self.load()
        return {"patients": len(patients), "sessions": len(sessions)}

    def close(self) -> None:
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
