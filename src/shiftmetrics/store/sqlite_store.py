"""SQLite-backed read adapter over the ``shifts`` / ``shift_activities`` tables."""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from collections.abc import Sequence
from pathlib import Path

from shiftmetrics.core.types import DateRange
from shiftmetrics.records.models import ActivityRecord, Shift

__all__ = ["SQLiteShiftStore", "SCHEMA"]


SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    name TEXT
);
CREATE TABLE IF NOT EXISTS shifts (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL,
    date TEXT NOT NULL,
    dn TEXT,
    totals_json TEXT
);
CREATE TABLE IF NOT EXISTS shift_activities (
    id INTEGER PRIMARY KEY,
    shift_id INTEGER NOT NULL,
    activity TEXT,
    sub_activity TEXT,
    payload_json TEXT,
    FOREIGN KEY (shift_id) REFERENCES shifts(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS connections (
    requester_id INTEGER NOT NULL,
    addressee_id INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
);
"""

# SQLite caps bound parameters per statement.
_CHUNK = 500


class SQLiteShiftStore:
    """Read shifts and activity records from a SQLite database file.

    Each call opens its own connection so one store can serve concurrent queries.
    ``sqlite3.Error`` propagates to the caller unchanged.
    """

    def __init__(self, sqlite_path: str | Path) -> None:
        self.path = Path(sqlite_path)
        if not self.path.exists():
            raise FileNotFoundError(self.path)

    def _connect(self) -> sqlite3.Connection:
        # Read-only URI so the engine never writes to the store.
        return sqlite3.connect(f"{self.path.resolve().as_uri()}?mode=ro", uri=True)

    def _has_table(self, conn: sqlite3.Connection, name: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
        ).fetchone()
        return row is not None

    def subject_exists(self, subject_id: int) -> bool:
        conn = self._connect()
        try:
            table = "users" if self._has_table(conn, "users") else "shifts"
            column = "id" if table == "users" else "user_id"
            row = conn.execute(
                f"SELECT 1 FROM {table} WHERE {column} = ? LIMIT 1", (subject_id,)
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def fetch_shifts(self, subject_id: int, date_range: DateRange) -> list[Shift]:
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT id, user_id, date, dn, totals_json
                  FROM shifts
                 WHERE user_id = ? AND substr(date, 1, 10) BETWEEN ? AND ?
                 ORDER BY date ASC, id ASC
                """,
                (subject_id, date_range.start.isoformat(), date_range.end.isoformat()),
            ).fetchall()
        finally:
            conn.close()
        return [
            Shift(
                id=row[0],
                subject_id=row[1],
                date=str(row[2])[:10],
                shift_type=row[3],
                totals=row[4],
            )
            for row in rows
        ]

    def fetch_activities(self, shift_ids: Sequence[int]) -> dict[int, list[ActivityRecord]]:
        ids = list(dict.fromkeys(shift_ids))
        grouped: dict[int, list[ActivityRecord]] = defaultdict(list)
        if not ids:
            return {}
        conn = self._connect()
        try:
            for offset in range(0, len(ids), _CHUNK):
                chunk = ids[offset : offset + _CHUNK]
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"""
                    SELECT shift_id, activity, sub_activity, payload_json
                      FROM shift_activities
                     WHERE shift_id IN ({placeholders})
                     ORDER BY shift_id ASC, id ASC
                    """,
                    chunk,
                ).fetchall()
                for shift_id, activity, sub_activity, payload in rows:
                    grouped[shift_id].append(
                        ActivityRecord.from_payload(shift_id, activity, sub_activity, payload)
                    )
        finally:
            conn.close()
        return dict(grouped)

    def accepted_peers(self, subject_id: int) -> tuple[int, ...]:
        conn = self._connect()
        try:
            if not self._has_table(conn, "connections"):
                return ()
            rows = conn.execute(
                """
                SELECT CASE WHEN requester_id = ? THEN addressee_id ELSE requester_id END
                  FROM connections
                 WHERE status = 'accepted' AND (requester_id = ? OR addressee_id = ?)
                """,
                (subject_id, subject_id, subject_id),
            ).fetchall()
        finally:
            conn.close()
        return tuple(sorted({int(row[0]) for row in rows if int(row[0]) != subject_id}))
