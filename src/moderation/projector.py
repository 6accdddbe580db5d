"""Project content deltas and a cadence schedule into a moderation queue snapshot."""

from __future__ import annotations

from copy import deepcopy
from datetime import datetime
from typing import Any, Iterable, Mapping

from core.errors import PreconditionError
from publishing.cadence import resolve_instant
from schemas.cadence import CadenceSchedule
from schemas.moderation import (
    CadenceProjection,
    ContentDelta,
    ModerationQueueItem,
    ModerationQueueState,
    QueueWindow,
)

NEEDS_REVIEW = "needs-review"
RESOLVED = "resolved"
WINDOW_AWAITING_REVIEW = "awaiting_review"
WINDOW_CLEAR = "clear"


def requires_review(delta: ContentDelta) -> bool:
    """True when the delta is moderated and not yet resolved."""
    return delta.safety.requires_moderation and (delta.status or NEEDS_REVIEW) != RESOLVED


def countdown_ms(deadline: datetime | None, now: datetime) -> int | None:
    """Milliseconds until ``deadline``, floored at zero; None without a deadline."""
    if deadline is None:
        return None
    remaining = (deadline - now).total_seconds() * 1000
    return max(0, int(remaining))


def project(
    *,
    session_id: str,
    deltas: Iterable[ContentDelta | Mapping[str, Any]] | None,
    schedule: CadenceSchedule | None,
    now: Any,
) -> ModerationQueueState:
    """Build the moderation queue for one session at instant ``now``.

    Only deltas flagged ``safety.requires_moderation`` become items. Neither
    ``deltas`` nor ``schedule`` is modified.
    """
    if not session_id:
        raise PreconditionError("moderation_queue_state_requires_session")
    generated_at = resolve_instant(now)
    window = schedule.moderation_window if schedule is not None else None
    deadline = window.end_at if window is not None else None

    items: list[ModerationQueueItem] = []
    for raw in deltas or []:
        delta = raw if isinstance(raw, ContentDelta) else ContentDelta.model_validate(raw)
        if not delta.safety.requires_moderation:
            continue
        status = delta.status or NEEDS_REVIEW
        items.append(
            ModerationQueueItem(
                delta_id=delta.delta_id,
                entity_id=delta.entity_id,
                entity_type=delta.entity_type,
                canonical_name=delta.canonical_name,
                created_at=resolve_instant(delta.created_at) if delta.created_at else generated_at,
                status=status,
                blocking=status != RESOLVED,
                reasons=sorted({str(reason) for reason in delta.safety.reasons}),
                capability_violations=list(delta.capability_refs),
                confidence_tier=delta.safety.confidence,
                conflicts=deepcopy(delta.safety.conflicts),
                proposed_changes=deepcopy(delta.proposed_changes),
                before=deepcopy(delta.before),
                after=deepcopy(delta.after),
                countdown_ms=countdown_ms(deadline, generated_at),
                deadline_at=deadline,
                window_start_at=window.start_at if window is not None else None,
                escalations_at=list(window.escalations) if window is not None else [],
            )
        )

    pending_count = sum(1 for item in items if item.blocking)
    derived_status = WINDOW_AWAITING_REVIEW if pending_count > 0 else WINDOW_CLEAR

    if window is not None:
        queue_window = QueueWindow(
            status=window.status or derived_status,
            start_at=window.start_at,
            end_at=window.end_at,
            escalations=list(window.escalations),
            notes=window.notes,
            updated_at=window.updated_at or generated_at,
        )
    else:
        queue_window = QueueWindow(status=derived_status, updated_at=generated_at)

    return ModerationQueueState(
        session_id=session_id,
        generated_at=generated_at,
        pending_count=pending_count,
        items=items,
        window=queue_window,
        cadence=_project_cadence(schedule),
    )


def _project_cadence(schedule: CadenceSchedule | None) -> CadenceProjection:
    if schedule is None:
        return CadenceProjection()
    pending = schedule.pending_batches()
    return CadenceProjection(
        next_batch_at=pending[0].run_at if pending else None,
        next_digest_at=schedule.digest.run_at,
        batches=[batch.model_copy(deep=True) for batch in schedule.batches],
        digest=schedule.digest.model_copy(deep=True),
    )


__all__ = [
    "NEEDS_REVIEW",
    "RESOLVED",
    "WINDOW_AWAITING_REVIEW",
    "WINDOW_CLEAR",
    "countdown_ms",
    "project",
    "requires_review",
]
