"""Session closure workflow: the offline job that plans, projects and gates."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from core.errors import PreconditionError
from jobs.coordinator import ClosureJobTracker
from schemas.jobs import OfflineJob
from schemas.moderation import ContentDelta
from schemas.requests import ClosureEvent
from services.publishing import PublishingCoordinator
from telemetry.sink import TelemetrySink

logger = logging.getLogger(__name__)

DEFAULT_SLA_MS = 10 * 60 * 1000


class ClosureWorkflow:
    def __init__(
        self,
        jobs: ClosureJobTracker,
        publishing: PublishingCoordinator,
        *,
        telemetry: TelemetrySink | None = None,
        sla_ms: int = DEFAULT_SLA_MS,
    ) -> None:
        self._jobs = jobs
        self._publishing = publishing
        self._telemetry = telemetry or TelemetrySink()
        self._sla_ms = sla_ms if sla_ms > 0 else DEFAULT_SLA_MS

    @property
    def jobs(self) -> ClosureJobTracker:
        return self._jobs

    def run(
        self,
        event: ClosureEvent | Mapping[str, Any],
        deltas: Iterable[ContentDelta | Mapping[str, Any]] | None = None,
    ) -> OfflineJob:
        """Process one closure end to end and return the finished job.

        Failures after the job starts are recorded on the job (and reported)
        rather than raised.
        """
        closure = _coerce_event(event)
        job = self._jobs.enqueue_closure(
            closure.session_id,
            closed_at=closure.closed_at,
            audit_ref=closure.audit_ref,
            reason=closure.reason,
        )
        self._telemetry.record_job_queued(
            job_id=job.job_id,
            session_id=job.session_id,
            attempts=job.attempts,
            enqueued_at=job.enqueued_at,
        )

        job = self._jobs.start_job(job.job_id)
        self._telemetry.record_job_started(
            job_id=job.job_id,
            session_id=job.session_id,
            attempt=job.attempts,
            started_at=job.started_at,
        )

        try:
            self._publishing.ensure_session(closure.session_id, closure.closed_at)
            prepared = self._publishing.prepare_batch(closure.session_id, deltas)
            batch = prepared.schedule.find_batch(prepared.batch_id)
            result = {
                "batch_id": prepared.batch_id,
                "status": prepared.status,
                "delta_count": prepared.delta_count,
                "pending_count": prepared.pending_count,
                "scheduled_at": batch.run_at.isoformat() if batch else None,
            }
            finished = self._jobs.complete_job(job.job_id, result)
        except Exception as exc:
            logger.exception(
                "Closure job %s failed for session %s", job.job_id, closure.session_id
            )
            failed = self._jobs.fail_job(job.job_id, exc)
            self._telemetry.record_job_failed(
                job_id=failed.job_id,
                session_id=failed.session_id,
                duration_ms=failed.duration_ms,
                message=failed.error.message if failed.error else None,
                code=failed.error.code if failed.error else None,
            )
            return failed

        self._telemetry.record_job_completed(
            job_id=finished.job_id,
            session_id=finished.session_id,
            duration_ms=finished.duration_ms,
            delta_count=prepared.delta_count,
            pending_count=prepared.pending_count,
            batch_id=prepared.batch_id,
        )
        if finished.duration_ms is not None and finished.duration_ms > self._sla_ms:
            logger.warning(
                "Closure job %s took %dms (SLA %dms)",
                finished.job_id,
                finished.duration_ms,
                self._sla_ms,
            )
            self._telemetry.record_latency(
                job_id=finished.job_id,
                session_id=finished.session_id,
                duration_ms=finished.duration_ms,
                sla_ms=self._sla_ms,
            )
        return finished


def _coerce_event(event: ClosureEvent | Mapping[str, Any]) -> ClosureEvent:
    if isinstance(event, ClosureEvent):
        return event
    try:
        return ClosureEvent.model_validate(dict(event))
    except ValidationError as exc:
        raise PreconditionError("closure_event_invalid", detail=str(exc)) from exc


__all__ = ["ClosureWorkflow", "DEFAULT_SLA_MS"]
