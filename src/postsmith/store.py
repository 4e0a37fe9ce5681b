from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Protocol


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS rate_limit_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_key TEXT NOT NULL,
    ts INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_rate_limit_events_key_ts
    ON rate_limit_events(subject_key, ts);
"""


class RateLimitStore(Protocol):
    """Storage for per-subject request timestamps (epoch milliseconds, ascending)."""

    def get(self, key: str) -> list[int]: ...

    def set(self, key: str, timestamps: list[int]) -> None: ...

    def prune(self, key: str, cutoff: int) -> list[int]: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryRateLimitStore:
    def __init__(self) -> None:
        self._rows: dict[str, list[int]] = {}

    def get(self, key: str) -> list[int]:
        return list(self._rows.get(key, ()))

    def set(self, key: str, timestamps: list[int]) -> None:
        if timestamps:
            self._rows[key] = sorted(timestamps)
        else:
            self._rows.pop(key, None)

    def prune(self, key: str, cutoff: int) -> list[int]:
        kept = [ts for ts in self._rows.get(key, ()) if ts > cutoff]
        self.set(key, kept)
        return list(kept)

    def delete(self, key: str) -> None:
        self._rows.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._rows)


class SqliteRateLimitStore:
    """Rate limit rows persisted in SQLite so several processes can share them."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)

    def get(self, key: str) -> list[int]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT ts FROM rate_limit_events WHERE subject_key = ? ORDER BY ts",
                (key,),
            ).fetchall()
            return [int(r["ts"]) for r in rows]

    def set(self, key: str, timestamps: list[int]) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM rate_limit_events WHERE subject_key = ?", (key,))
            conn.executemany(
                "INSERT INTO rate_limit_events(subject_key, ts) VALUES (?, ?)",
                [(key, ts) for ts in sorted(timestamps)],
            )

    def prune(self, key: str, cutoff: int) -> list[int]:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM rate_limit_events WHERE subject_key = ? AND ts <= ?",
                (key, cutoff),
            )
            rows = conn.execute(
                "SELECT ts FROM rate_limit_events WHERE subject_key = ? ORDER BY ts",
                (key,),
            ).fetchall()
            return [int(r["ts"]) for r in rows]

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM rate_limit_events WHERE subject_key = ?", (key,))

    def keys(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT subject_key FROM rate_limit_events ORDER BY subject_key"
            ).fetchall()
            return [r["subject_key"] for r in rows]
