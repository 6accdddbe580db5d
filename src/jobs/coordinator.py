"""In-process tracker for session closure jobs.

Jobs only move forward (queued -> processing -> completed | failed). Every
transition is published as a lifecycle event; publisher and listener
failures are logged and never interrupt the job being reported.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from core.errors import ConflictError, NotFoundError, PreconditionError
from jobs.lifecycle import event_for
from publishing.cadence import resolve_instant
from schemas.jobs import JOB_STATUS_RANK, OfflineJob, normalize_job_error

logger = logging.getLogger(__name__)

Publisher = Callable[[str, dict[str, Any]], None]
JobListener = Callable[[OfflineJob], None]


DEFAULT_MAX_FINISHED_JOBS = 1000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClosureJobTracker:
    def __init__(
        self,
        *,
        publisher: Publisher | None = None,
        clock: Callable[[], datetime] | None = None,
        max_finished_jobs: int = DEFAULT_MAX_FINISHED_JOBS,
    ) -> None:
        self._publisher = publisher
        self._clock = clock or _utc_now
        self._max_finished = max(0, max_finished_jobs)
        self._jobs: dict[str, OfflineJob] = {}
        self._listeners: list[JobListener] = []
        self._lock = threading.Lock()

    def enqueue_closure(
        self,
        session_id: str,
        closed_at: Any = None,
        audit_ref: str | None = None,
        reason: str | None = None,
        attempts: int = 0,
    ) -> OfflineJob:
        if not session_id:
            raise PreconditionError("offline_job_requires_session_id")
        job = OfflineJob(
            job_id=f"closure-{uuid4().hex}",
            session_id=session_id,
            status="queued",
            enqueued_at=self._now(),
            attempts=attempts,
            closed_at=resolve_instant(closed_at) if closed_at is not None else None,
            audit_ref=audit_ref,
            reason=reason,
        )
        with self._lock:
            self._jobs[job.job_id] = job
            listeners = list(self._listeners)
        logger.info("Queued closure job %s for session %s", job.job_id, session_id)
        self._publish(job)
        for listener in listeners:
            try:
                listener(job.model_copy(deep=True))
            except Exception:
                logger.exception("Job listener failed for %s", job.job_id)
        return job.model_copy(deep=True)

    def start_job(self, job_id: str) -> OfflineJob:
        def transition(job: OfflineJob) -> None:
            job.started_at = self._now()
            job.attempts += 1

        return self._advance(job_id, "processing", transition)

    def complete_job(self, job_id: str, result: Mapping[str, Any] | None = None) -> OfflineJob:
        def transition(job: OfflineJob) -> None:
            job.completed_at = self._now()
            job.duration_ms = _duration_ms(job.started_at, job.completed_at)
            job.result = dict(result) if result is not None else None

        return self._advance(job_id, "completed", transition)

    def fail_job(self, job_id: str, error: Any) -> OfflineJob:
        def transition(job: OfflineJob) -> None:
            job.completed_at = self._now()
            job.duration_ms = _duration_ms(job.started_at, job.completed_at)
            job.error = normalize_job_error(error)

        return self._advance(job_id, "failed", transition)

    def get_job(self, job_id: str) -> OfflineJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def list_jobs(self) -> list[OfflineJob]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._jobs.values()]

    def on_job_queued(self, listener: JobListener) -> Callable[[], None]:
        """Register a listener for newly queued jobs; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _advance(
        self,
        job_id: str,
        status: str,
        transition: Callable[[OfflineJob], None],
    ) -> OfflineJob:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise NotFoundError("offline_job_missing", detail=job_id)
            if JOB_STATUS_RANK[status] <= JOB_STATUS_RANK[current.status]:
                raise ConflictError(
                    "offline_job_invalid_transition",
                    detail=f"{current.status} -> {status}",
                )
            job = current.model_copy(deep=True)
            job.status = status
            transition(job)
            self._jobs[job_id] = job
            self._prune_finished()
        logger.info("Closure job %s is %s", job_id, status)
        self._publish(job)
        return job.model_copy(deep=True)

    def _prune_finished(self) -> None:
        """Drop the oldest finished jobs beyond the cap. Caller holds the lock."""
        finished = [
            job_id
            for job_id, job in self._jobs.items()
            if job.status in ("completed", "failed")
        ]
        for job_id in finished[: max(0, len(finished) - self._max_finished)]:
            del self._jobs[job_id]

    def _publish(self, job: OfflineJob) -> None:
        if self._publisher is None:
            return
        event = event_for(job)
        try:
            self._publisher(event.type, event.to_wire())
        except Exception:
            logger.exception("Publishing %s failed for job %s", event.type, job.job_id)

    def _now(self) -> datetime:
        return resolve_instant(self._clock())


def _duration_ms(started_at: datetime | None, completed_at: datetime | None) -> int | None:
    if started_at is None or completed_at is None:
        return None
    return max(0, int((completed_at - started_at).total_seconds() * 1000))


__all__ = ["ClosureJobTracker", "DEFAULT_MAX_FINISHED_JOBS", "JobListener", "Publisher"]
