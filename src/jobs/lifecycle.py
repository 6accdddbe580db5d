"""Offline job lifecycle event helpers.

Each helper stamps exactly one timestamp: ``queued`` stamps ``enqueued_at``,
``started`` stamps ``started_at``, ``completed`` and ``failed`` stamp
``completed_at``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from schemas.jobs import OfflineJob, OfflineJobEvent

SESSION_CLOSURE_QUEUED = "offline.session_closure.queued"
SESSION_CLOSURE_STARTED = "offline.session_closure.started"
SESSION_CLOSURE_COMPLETED = "offline.session_closure.completed"
SESSION_CLOSURE_FAILED = "offline.session_closure.failed"


def _stamp(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def queued(
    job_id: str,
    attempts: int = 0,
    *,
    session_id: str | None = None,
    now: datetime | None = None,
) -> OfflineJobEvent:
    return OfflineJobEvent(
        type=SESSION_CLOSURE_QUEUED,
        job_id=job_id,
        status="queued",
        attempts=attempts,
        session_id=session_id,
        enqueued_at=_stamp(now),
    )


def started(
    job_id: str,
    attempts: int = 1,
    *,
    session_id: str | None = None,
    now: datetime | None = None,
) -> OfflineJobEvent:
    return OfflineJobEvent(
        type=SESSION_CLOSURE_STARTED,
        job_id=job_id,
        status="processing",
        attempts=attempts,
        session_id=session_id,
        started_at=_stamp(now),
    )


def completed(
    job_id: str,
    result: Mapping[str, Any] | None = None,
    duration_ms: int | None = None,
    *,
    attempts: int = 0,
    session_id: str | None = None,
    now: datetime | None = None,
) -> OfflineJobEvent:
    return OfflineJobEvent(
        type=SESSION_CLOSURE_COMPLETED,
        job_id=job_id,
        status="completed",
        attempts=attempts,
        session_id=session_id,
        completed_at=_stamp(now),
        duration_ms=duration_ms,
        result=dict(result) if result is not None else None,
    )


def failed(
    job_id: str,
    error: Any,
    duration_ms: int | None = None,
    *,
    attempts: int = 0,
    session_id: str | None = None,
    now: datetime | None = None,
) -> OfflineJobEvent:
    return OfflineJobEvent(
        type=SESSION_CLOSURE_FAILED,
        job_id=job_id,
        status="failed",
        attempts=attempts,
        session_id=session_id,
        completed_at=_stamp(now),
        duration_ms=duration_ms,
        error=error,
    )


def event_for(job: OfflineJob) -> OfflineJobEvent:
    """The lifecycle event describing the job's current state."""
    if job.status == "queued":
        return queued(job.job_id, job.attempts, session_id=job.session_id, now=job.enqueued_at)
    if job.status == "processing":
        return started(job.job_id, job.attempts, session_id=job.session_id, now=job.started_at)
    if job.status == "completed":
        return completed(
            job.job_id,
            job.result,
            job.duration_ms,
            attempts=job.attempts,
            session_id=job.session_id,
            now=job.completed_at,
        )
    return failed(
        job.job_id,
        job.error,
        job.duration_ms,
        attempts=job.attempts,
        session_id=job.session_id,
        now=job.completed_at,
    )


__all__ = [
    "SESSION_CLOSURE_COMPLETED",
    "SESSION_CLOSURE_FAILED",
    "SESSION_CLOSURE_QUEUED",
    "SESSION_CLOSURE_STARTED",
    "completed",
    "event_for",
    "failed",
    "queued",
    "started",
]
