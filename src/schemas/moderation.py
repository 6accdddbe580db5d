"""Content delta inputs and moderation queue snapshot schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.cadence import Batch, Digest


class SafetyAssessment(BaseModel):
    """Pre-computed moderation classification attached to a delta."""

    requires_moderation: bool = False
    reasons: List[str] = Field(default_factory=list)
    confidence: Optional[str] = None
    conflicts: List[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class ContentDelta(BaseModel):
    """A proposed world-content change produced by the narrative pipeline."""

    delta_id: str
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    canonical_name: Optional[str] = None
    created_at: Optional[datetime] = None
    proposed_changes: Optional[dict[str, Any]] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    safety: SafetyAssessment = Field(default_factory=SafetyAssessment)
    capability_refs: List[str] = Field(default_factory=list)
    status: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


# Queue shapes below default every field so stored snapshots written by an
# older or newer schema still decode.


class ModerationQueueItem(BaseModel):
    delta_id: Optional[str] = None
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    canonical_name: Optional[str] = None
    created_at: Optional[datetime] = None
    status: str = "needs-review"
    blocking: bool = True
    reasons: List[str] = Field(default_factory=list)
    capability_violations: List[str] = Field(default_factory=list)
    confidence_tier: Optional[str] = None
    conflicts: List[dict[str, Any]] = Field(default_factory=list)
    proposed_changes: Optional[dict[str, Any]] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    countdown_ms: Optional[int] = None
    deadline_at: Optional[datetime] = None
    window_start_at: Optional[datetime] = None
    escalations_at: List[datetime] = Field(default_factory=list)
    moderation_decision_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    decision_actor: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class QueueWindow(BaseModel):
    status: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    escalations: List[datetime] = Field(default_factory=list)
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class CadenceProjection(BaseModel):
    """Read-optimized view of the owning schedule."""

    next_batch_at: Optional[datetime] = None
    next_digest_at: Optional[datetime] = None
    batches: List[Batch] = Field(default_factory=list)
    digest: Optional[Digest] = None

    model_config = ConfigDict(extra="ignore")


class ModerationQueueState(BaseModel):
    session_id: Optional[str] = None
    generated_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    pending_count: int = 0
    items: List[ModerationQueueItem] = Field(default_factory=list)
    window: Optional[QueueWindow] = None
    cadence: Optional[CadenceProjection] = None

    model_config = ConfigDict(extra="ignore")

    def blocking_items(self) -> list[ModerationQueueItem]:
        return [item for item in self.items if item.blocking]


class ModerationQueueRecord(BaseModel):
    """A persisted queue snapshot plus its denormalized columns."""

    session_id: str
    pending_count: int = 0
    updated_at: Optional[datetime] = None
    state: ModerationQueueState = Field(default_factory=ModerationQueueState)


__all__ = [
    "CadenceProjection",
    "ContentDelta",
    "ModerationQueueItem",
    "ModerationQueueRecord",
    "ModerationQueueState",
    "QueueWindow",
    "SafetyAssessment",
]
