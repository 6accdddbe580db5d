"""Publishing cadence schemas (moderation window, batches, digest, history)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

BatchStatus = Literal["scheduled", "ready", "published", "failed"]

TERMINAL_BATCH_STATUSES = frozenset({"published", "failed"})


class CadenceConfig(BaseModel):
    """Offsets that turn a closure instant into a publishing cadence."""

    moderation_delay_minutes: int = Field(default=15, ge=0)
    moderation_window_minutes: int = Field(default=45, gt=0)
    # Offsets from the moderation window start.
    moderation_escalation_minutes: List[int] = Field(default_factory=lambda: [30, 40])
    digest_hour: int = Field(default=2, ge=0, le=23)
    digest_minute: int = Field(default=0, ge=0, le=59)
    timezone_offset_minutes: int = Field(default=0, ge=-14 * 60, le=14 * 60)
    max_override_defer_minutes: int = Field(default=12 * 60, gt=0)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_escalations(self) -> "CadenceConfig":
        previous = 0
        for offset in self.moderation_escalation_minutes:
            if offset <= previous:
                raise ValueError(
                    "moderation_escalation_minutes must be strictly increasing and > 0"
                )
            previous = offset
        if previous >= self.moderation_window_minutes and self.moderation_escalation_minutes:
            raise ValueError(
                "moderation_escalation_minutes must fall inside the moderation window"
            )
        return self

    def merged(self, overrides: dict[str, Any] | None) -> "CadenceConfig":
        if not overrides:
            return self
        payload = self.model_dump()
        payload.update(overrides)
        return CadenceConfig.model_validate(payload)


class ModerationWindow(BaseModel):
    # None means "derive from the queue" (awaiting_review / clear).
    status: Optional[str] = None
    start_at: datetime
    end_at: datetime
    escalations: List[datetime] = Field(default_factory=list)
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class OverrideRecord(BaseModel):
    """One applied human deferral."""

    override_id: str
    target: str
    batch_id: Optional[str] = None
    defer_by_minutes: float
    defer_until: datetime
    previous_run_at: datetime
    actor: str
    reason: Optional[str] = None
    applied_at: datetime


class Batch(BaseModel):
    batch_id: str
    type: str = "hourly"
    run_at: datetime
    status: BatchStatus = "scheduled"
    prepared_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    delta_count: Optional[int] = None
    latency_ms: Optional[int] = None
    notes: Optional[str] = None
    override: Optional[OverrideRecord] = None


class Digest(BaseModel):
    run_at: datetime
    status: str = "scheduled"
    notes: Optional[str] = None
    override: Optional[OverrideRecord] = None


class HistoryEntry(BaseModel):
    sequence: int
    type: str
    occurred_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)


class CadencePlan(BaseModel):
    """Pure output of the cadence clock policy."""

    closed_at: datetime
    moderation_window: ModerationWindow
    batches: List[Batch]
    digest: Digest


class CadenceSchedule(BaseModel):
    """Stored cadence for one session. Readers always receive a fresh copy."""

    session_id: str
    session_closed_at: datetime
    moderation_window: ModerationWindow
    batches: List[Batch] = Field(default_factory=list)
    digest: Digest
    overrides: List[OverrideRecord] = Field(default_factory=list)
    history: List[HistoryEntry] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def find_batch(self, batch_id: str) -> Batch | None:
        for batch in self.batches:
            if batch.batch_id == batch_id:
                return batch
        return None

    def pending_batches(self) -> list[Batch]:
        """Batches that have not run yet, soonest first."""
        pending = [b for b in self.batches if b.status not in TERMINAL_BATCH_STATUSES]
        return sorted(pending, key=lambda b: b.run_at)

    def history_types(self) -> list[str]:
        return [entry.type for entry in self.history]


__all__ = [
    "Batch",
    "BatchStatus",
    "CadenceConfig",
    "CadencePlan",
    "CadenceSchedule",
    "Digest",
    "HistoryEntry",
    "ModerationWindow",
    "OverrideRecord",
    "TERMINAL_BATCH_STATUSES",
]
