"""Response schemas returned by services, the API and the CLI."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from schemas.cadence import CadenceSchedule
from schemas.moderation import ModerationQueueRecord

PreparationStatus = Literal["ready", "awaiting_moderation"]


class BatchPreparation(BaseModel):
    """Outcome of preparing a batch against the moderation gate."""

    session_id: str
    batch_id: str
    status: PreparationStatus
    delta_count: int
    pending_count: int
    moderation_decision_id: Optional[str] = None
    schedule: CadenceSchedule
    queue: ModerationQueueRecord


__all__ = ["BatchPreparation", "PreparationStatus"]
