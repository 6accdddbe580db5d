"""SQLite-backed state store for cadence schedules and moderation queues."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from core.errors import ConflictError, NotFoundError
from persistence.models import QueueRow, ScheduleRow


_SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS publishing_cadence_state (
    session_id TEXT PRIMARY KEY,
    state TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS moderation_queue_state (
    session_id TEXT PRIMARY KEY,
    state TEXT NOT NULL,
    pending_count INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_moderation_queue_updated_at
    ON moderation_queue_state(updated_at);
"""


class SqliteStore:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
            conn.commit()

    # -- cadence schedules -------------------------------------------------

    def insert_schedule(self, session_id: str, state_json: str, *, now: datetime) -> bool:
        """Insert a new schedule row; returns False when the session already exists."""
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO publishing_cadence_state (session_id, state, version, created_at, updated_at)
                VALUES (?, ?, 1, ?, ?)
                ON CONFLICT(session_id) DO NOTHING
                """,
                (session_id, state_json, _to_iso(now), _to_iso(now)),
            )
            conn.commit()
            return cur.rowcount == 1

    def get_schedule(self, session_id: str) -> ScheduleRow | None:
        row = self._fetch_one(
            "SELECT * FROM publishing_cadence_state WHERE session_id = ?",
            (session_id,),
        )
        return _row_to_schedule(row) if row else None

    def update_schedule(
        self,
        session_id: str,
        state_json: str,
        *,
        expected_version: int,
        now: datetime,
    ) -> int:
        """Write a schedule if nobody else has since the caller read it.

        Returns the new version.
        """
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE publishing_cadence_state
                   SET state = ?, version = version + 1, updated_at = ?
                 WHERE session_id = ? AND version = ?
                """,
                (state_json, _to_iso(now), session_id, expected_version),
            )
            conn.commit()
            if cur.rowcount == 1:
                return expected_version + 1
            exists = conn.execute(
                "SELECT 1 FROM publishing_cadence_state WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if exists is None:
            raise NotFoundError("publishing_state_session_missing")
        raise ConflictError("publishing_state_version_conflict")

    def delete_schedule(self, session_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM publishing_cadence_state WHERE session_id = ?",
                (session_id,),
            )
            conn.commit()

    # -- moderation queues -------------------------------------------------

    def upsert_queue(
        self,
        session_id: str,
        state_json: str,
        *,
        pending_count: int,
        updated_at: datetime,
    ) -> None:
        stamp = _to_iso(updated_at)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO moderation_queue_state (session_id, state, pending_count, updated_at, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    state = excluded.state,
                    pending_count = excluded.pending_count,
                    updated_at = excluded.updated_at
                """,
                (session_id, state_json, int(pending_count), stamp, stamp),
            )
            conn.commit()

    def get_queue(self, session_id: str) -> QueueRow | None:
        row = self._fetch_one(
            "SELECT * FROM moderation_queue_state WHERE session_id = ?",
            (session_id,),
        )
        return _row_to_queue(row) if row else None

    def list_queues(self) -> list[QueueRow]:
        rows = self._fetch_all(
            """
            SELECT * FROM moderation_queue_state
             ORDER BY updated_at DESC, session_id
            """
        )
        return [_row_to_queue(row) for row in rows]

    def delete_queue(self, session_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM moderation_queue_state WHERE session_id = ?",
                (session_id,),
            )
            conn.commit()

    def _fetch_one(self, query: str, params: tuple[object, ...] = ()) -> sqlite3.Row | None:
        with self._connect() as conn:
            cur = conn.execute(query, params)
            return cur.fetchone()

    def _fetch_all(self, query: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        with self._connect() as conn:
            cur = conn.execute(query, params)
            return cur.fetchall()


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _row_to_schedule(row: sqlite3.Row) -> ScheduleRow:
    return ScheduleRow(
        session_id=row["session_id"],
        state_json=row["state"],
        version=int(row["version"]),
        created_at=_from_iso(row["created_at"]) or datetime.now(timezone.utc),
        updated_at=_from_iso(row["updated_at"]) or datetime.now(timezone.utc),
    )


def _row_to_queue(row: sqlite3.Row) -> QueueRow:
    return QueueRow(
        session_id=row["session_id"],
        state_json=row["state"],
        pending_count=row["pending_count"],
        updated_at=_from_iso(row["updated_at"]),
        created_at=_from_iso(row["created_at"]),
    )


__all__ = ["SqliteStore"]
