"""External request schemas for cadence and moderation operations."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from schemas.cadence import BatchStatus
from schemas.moderation import ContentDelta


class ClosureEvent(BaseModel):
    """Session closure notification from the narrative pipeline."""

    session_id: str = Field(min_length=1)
    closed_at: datetime
    audit_ref: str | None = None
    reason: str | None = None

    model_config = ConfigDict(extra="forbid")


class PlanRequest(BaseModel):
    closed_at: datetime
    config: dict[str, Any] | None = None

    model_config = ConfigDict(extra="forbid")


class OverrideRequest(BaseModel):
    """Human deferral of a batch (or the digest). Limits are enforced by the store."""

    defer_by_minutes: float | None = None
    defer_until: datetime | None = None
    actor: str = "admin.system"
    reason: str | None = None
    # A batch id or "digest"; omitted means the soonest pending batch.
    target: str | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_deferral(self) -> "OverrideRequest":
        if (self.defer_by_minutes is None) == (self.defer_until is None):
            raise ValueError("Provide exactly one of defer_by_minutes or defer_until.")
        return self


class BatchStatusUpdate(BaseModel):
    status: BatchStatus
    prepared_at: datetime | None = None
    published_at: datetime | None = None
    delta_count: int | None = Field(default=None, ge=0)
    latency_ms: int | None = Field(default=None, ge=0)
    notes: str | None = None

    model_config = ConfigDict(extra="forbid")

    def metadata(self) -> dict[str, Any]:
        return self.model_dump(exclude={"status"}, exclude_none=True)


class QueueProjectionRequest(BaseModel):
    deltas: list[ContentDelta] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


__all__ = [
    "BatchStatusUpdate",
    "ClosureEvent",
    "OverrideRequest",
    "PlanRequest",
    "QueueProjectionRequest",
]
