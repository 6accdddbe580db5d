"""Persistence protocol contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from persistence.models import QueueRow, ScheduleRow


class ScheduleStateStore(Protocol):
    def insert_schedule(self, session_id: str, state_json: str, *, now: datetime) -> bool: ...

    def get_schedule(self, session_id: str) -> ScheduleRow | None: ...

    def update_schedule(
        self,
        session_id: str,
        state_json: str,
        *,
        expected_version: int,
        now: datetime,
    ) -> int: ...

    def delete_schedule(self, session_id: str) -> None: ...


class QueueStateStore(Protocol):
    def upsert_queue(
        self,
        session_id: str,
        state_json: str,
        *,
        pending_count: int,
        updated_at: datetime,
    ) -> None: ...

    def get_queue(self, session_id: str) -> QueueRow | None: ...

    def list_queues(self) -> list[QueueRow]: ...

    def delete_queue(self, session_id: str) -> None: ...


__all__ = ["QueueStateStore", "ScheduleStateStore"]
