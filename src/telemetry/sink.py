"""Structured telemetry emission with per-event field allow-lists.

Only fields named in ``_ALLOWED_FIELDS`` for an event ever reach the log or
the transport emitter. Free text such as override reasons or delta content
is never allow-listed.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Mapping

logger = logging.getLogger("continuity.telemetry")

Emitter = Callable[[str, dict[str, Any]], None]

JOB_QUEUED = "offline.job.queued"
JOB_STARTED = "offline.job.started"
JOB_COMPLETED = "offline.job.completed"
JOB_FAILED = "offline.job.failed"
JOB_LATENCY = "offline.job.latency"
CADENCE_PLANNED = "publishing.cadence.planned"
OVERRIDE_APPLIED = "publishing.override.applied"
BATCH_STATUS = "publishing.batch.status"
BATCH_PUBLISHED = "publishing.batch.published"
QUEUE_PROJECTED = "moderation.queue.projected"

_ALLOWED_FIELDS: dict[str, frozenset[str]] = {
    JOB_QUEUED: frozenset({"job_id", "session_id", "attempts", "enqueued_at"}),
    JOB_STARTED: frozenset({"job_id", "session_id", "attempt", "started_at"}),
    JOB_COMPLETED: frozenset(
        {"job_id", "session_id", "duration_ms", "delta_count", "pending_count", "batch_id"}
    ),
    JOB_FAILED: frozenset({"job_id", "session_id", "duration_ms", "message", "code"}),
    JOB_LATENCY: frozenset({"job_id", "session_id", "duration_ms", "sla_ms"}),
    CADENCE_PLANNED: frozenset(
        {
            "session_id",
            "moderation_start_at",
            "moderation_end_at",
            "batch_run_at",
            "digest_run_at",
            "replanned",
        }
    ),
    OVERRIDE_APPLIED: frozenset(
        {"session_id", "target", "batch_id", "defer_by_minutes", "defer_until", "actor"}
    ),
    BATCH_STATUS: frozenset(
        {"session_id", "batch_id", "status", "previous_status", "delta_count", "latency_ms"}
    ),
    BATCH_PUBLISHED: frozenset(
        {"session_id", "batch_id", "delta_count", "latency_ms", "published_at"}
    ),
    QUEUE_PROJECTED: frozenset({"session_id", "pending_count", "item_count", "next_batch_at"}),
}


def allowed_fields(event: str) -> frozenset[str]:
    try:
        return _ALLOWED_FIELDS[event]
    except KeyError:
        raise ValueError(f"Unknown telemetry event: {event}") from None


def filter_payload(event: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only allow-listed fields, rendering datetimes as ISO strings."""
    allowed = allowed_fields(event)
    filtered: dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            continue
        filtered[key] = value.isoformat() if isinstance(value, datetime) else value
    return filtered


class TelemetrySink:
    def __init__(self, emitter: Emitter | None = None, *, log: logging.Logger | None = None) -> None:
        self._emitter = emitter
        self._log = log or logger

    def emit(self, event: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        filtered = filter_payload(event, payload)
        self._log.info("%s %s", event, json.dumps(filtered, sort_keys=True, default=str))
        if self._emitter is not None:
            try:
                self._emitter(event, dict(filtered))
            except Exception:
                self._log.exception("Telemetry emitter failed for %s", event)
        return filtered

    def record_job_queued(self, **fields: Any) -> dict[str, Any]:
        return self.emit(JOB_QUEUED, fields)

    def record_job_started(self, **fields: Any) -> dict[str, Any]:
        return self.emit(JOB_STARTED, fields)

    def record_job_completed(self, **fields: Any) -> dict[str, Any]:
        return self.emit(JOB_COMPLETED, fields)

    def record_job_failed(self, **fields: Any) -> dict[str, Any]:
        return self.emit(JOB_FAILED, fields)

    def record_latency(self, **fields: Any) -> dict[str, Any]:
        return self.emit(JOB_LATENCY, fields)

    def record_cadence_planned(self, **fields: Any) -> dict[str, Any]:
        return self.emit(CADENCE_PLANNED, fields)

    def record_override_applied(self, **fields: Any) -> dict[str, Any]:
        return self.emit(OVERRIDE_APPLIED, fields)

    def record_batch_status(self, **fields: Any) -> dict[str, Any]:
        return self.emit(BATCH_STATUS, fields)

    def record_batch_published(self, **fields: Any) -> dict[str, Any]:
        return self.emit(BATCH_PUBLISHED, fields)

    def record_queue_projected(self, **fields: Any) -> dict[str, Any]:
        return self.emit(QUEUE_PROJECTED, fields)


__all__ = [
    "BATCH_PUBLISHED",
    "BATCH_STATUS",
    "CADENCE_PLANNED",
    "JOB_COMPLETED",
    "JOB_FAILED",
    "JOB_LATENCY",
    "JOB_QUEUED",
    "JOB_STARTED",
    "OVERRIDE_APPLIED",
    "QUEUE_PROJECTED",
    "TelemetrySink",
    "allowed_fields",
    "filter_payload",
]
