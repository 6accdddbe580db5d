"""Lightweight persistence records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ScheduleRow:
    session_id: str
    state_json: str
    version: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class QueueRow:
    session_id: str
    state_json: str | None
    pending_count: int | None
    updated_at: datetime | None
    created_at: datetime | None


__all__ = ["QueueRow", "ScheduleRow"]
