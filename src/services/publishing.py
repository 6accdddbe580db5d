"""Publishing coordinator: ties the cadence schedule to the moderation gate."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError

from core.errors import ConflictError, NotFoundError, PreconditionError
from moderation.projector import project, requires_review
from moderation.queue_store import ModerationQueueStore
from publishing.cadence import resolve_instant
from publishing.schedule_store import CadenceScheduleStore
from schemas.cadence import Batch, CadenceSchedule
from schemas.moderation import ContentDelta, ModerationQueueRecord
from schemas.responses import BatchPreparation
from telemetry.sink import TelemetrySink

logger = logging.getLogger(__name__)

MODERATION_GATE_PENDING = "moderation_gate_pending"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PublishingCoordinator:
    def __init__(
        self,
        schedules: CadenceScheduleStore,
        queues: ModerationQueueStore,
        *,
        clock: Callable[[], datetime] | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._schedules = schedules
        self._queues = queues
        self._clock = clock or _utc_now
        self._telemetry = telemetry or TelemetrySink()

    @property
    def schedules(self) -> CadenceScheduleStore:
        return self._schedules

    @property
    def queues(self) -> ModerationQueueStore:
        return self._queues

    def ensure_session(self, session_id: str, closed_at: Any) -> CadenceSchedule:
        """Return the existing schedule, planning one on first sight of the session."""
        existing = self._schedules.get_schedule(session_id)
        if existing is not None:
            return existing
        try:
            return self._schedules.plan_for_session(session_id, closed_at)
        except ConflictError:
            # Another caller planned it between our read and insert.
            return self._schedules.require_schedule(session_id)

    def project_queue(
        self,
        session_id: str,
        deltas: Iterable[ContentDelta | Mapping[str, Any]] | None,
    ) -> ModerationQueueRecord:
        """Project the queue against the stored schedule (if any) and save it."""
        schedule = self._schedules.get_schedule(session_id)
        state = project(
            session_id=session_id,
            deltas=_coerce_deltas(deltas),
            schedule=schedule,
            now=self._clock(),
        )
        record = self._queues.save_queue(session_id, state)
        self._telemetry.record_queue_projected(
            session_id=session_id,
            pending_count=record.pending_count,
            item_count=len(record.state.items),
            next_batch_at=state.cadence.next_batch_at if state.cadence else None,
        )
        return record

    def prepare_batch(
        self,
        session_id: str,
        deltas: Iterable[ContentDelta | Mapping[str, Any]] | None,
        batch_id: str | None = None,
        moderation_decision_id: str | None = None,
    ) -> BatchPreparation:
        """Move a batch to ``ready`` unless unresolved moderation items hold it back.

        A gated batch keeps its current status with notes ``moderation_gate_pending``.
        A ``moderation_decision_id`` records that a moderator cleared the gate.
        """
        if not session_id:
            raise PreconditionError("publishing_coordinator_requires_session")
        items = _coerce_deltas(deltas)
        schedule = self._schedules.require_schedule(session_id)
        batch = _select_batch(schedule, batch_id)
        pending = sum(1 for delta in items if requires_review(delta))
        gated = pending > 0 and not moderation_decision_id

        if gated:
            # A batch already moved past scheduled keeps its status; only the gate is recorded.
            self._schedules.update_batch_status(
                session_id,
                batch.batch_id,
                batch.status,
                {"delta_count": len(items), "notes": MODERATION_GATE_PENDING},
            )
            logger.info(
                "Batch %s for session %s held for %d moderation item(s)",
                batch.batch_id,
                session_id,
                pending,
            )
        else:
            self._schedules.update_batch_status(
                session_id,
                batch.batch_id,
                "ready",
                {"prepared_at": self._now(), "delta_count": len(items)},
            )

        queue = self.project_queue(session_id, items)
        return BatchPreparation(
            session_id=session_id,
            batch_id=batch.batch_id,
            status="awaiting_moderation" if gated else "ready",
            delta_count=len(items),
            pending_count=queue.pending_count,
            moderation_decision_id=moderation_decision_id,
            schedule=self._schedules.require_schedule(session_id),
            queue=queue,
        )

    def mark_batch_published(
        self,
        session_id: str,
        batch_id: str,
        published_at: Any = None,
        delta_count: int | None = None,
    ) -> CadenceSchedule:
        if not session_id or not batch_id:
            raise PreconditionError("publishing_coordinator_requires_batch")
        schedule = self._schedules.require_schedule(session_id)
        batch = _select_batch(schedule, batch_id)
        published = resolve_instant(published_at) if published_at is not None else self._now()
        latency_ms = max(0, int((published - batch.run_at).total_seconds() * 1000))
        count = delta_count if delta_count is not None else (batch.delta_count or 0)

        updated = self._schedules.update_batch_status(
            session_id,
            batch_id,
            "published",
            {"published_at": published, "delta_count": count, "latency_ms": latency_ms},
        )
        self._telemetry.record_batch_published(
            session_id=session_id,
            batch_id=batch_id,
            delta_count=count,
            latency_ms=latency_ms,
            published_at=published,
        )
        return updated

    def _now(self) -> datetime:
        return resolve_instant(self._clock())


def _select_batch(schedule: CadenceSchedule, batch_id: str | None) -> Batch:
    if batch_id:
        batch = schedule.find_batch(batch_id)
        if batch is None:
            raise NotFoundError("publishing_batch_missing", detail=batch_id)
        return batch
    if not schedule.batches:
        raise PreconditionError("publishing_coordinator_no_batches")
    pending = schedule.pending_batches()
    return pending[0] if pending else schedule.batches[0]


def _coerce_deltas(
    deltas: Iterable[ContentDelta | Mapping[str, Any]] | None,
) -> list[ContentDelta]:
    coerced: list[ContentDelta] = []
    for delta in deltas or []:
        if isinstance(delta, ContentDelta):
            coerced.append(delta)
            continue
        try:
            coerced.append(ContentDelta.model_validate(delta))
        except ValidationError as exc:
            raise PreconditionError("moderation_delta_invalid", detail=str(exc)) from exc
    return coerced


__all__ = ["MODERATION_GATE_PENDING", "PublishingCoordinator"]
