"""Cadence schedule store: one schedule per session, audited mutations only."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from pydantic import ValidationError

from core.errors import (
    ConflictError,
    NotFoundError,
    PolicyViolationError,
    PreconditionError,
)
from persistence.contracts import ScheduleStateStore
from persistence.locks import KeyedLocks
from publishing.cadence import DEFAULT_CADENCE_CONFIG, compute_schedule, resolve_instant
from schemas.cadence import (
    TERMINAL_BATCH_STATUSES,
    Batch,
    CadenceConfig,
    CadencePlan,
    CadenceSchedule,
    HistoryEntry,
    OverrideRecord,
)
from schemas.requests import BatchStatusUpdate, OverrideRequest
from telemetry.sink import TelemetrySink

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DIGEST_TARGET = "digest"

_BATCH_TRANSITIONS: dict[str, frozenset[str]] = {
    "scheduled": frozenset({"scheduled", "ready", "failed"}),
    "ready": frozenset({"ready", "published", "failed"}),
    "published": frozenset(),
    "failed": frozenset(),
}

_METADATA_FIELDS = ("prepared_at", "published_at", "delta_count", "latency_ms", "notes")

# (history type, history payload) produced by a mutation.
HistoryEvent = tuple[str, dict[str, Any]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CadenceScheduleStore:
    """Sole writer of cadence schedules.

    Writes for one session are serialized with a per-session lock and
    guarded by the row version, so a read-modify-write and its history entry
    land together or not at all. Reads decode a fresh copy every time.
    """

    def __init__(
        self,
        state_store: ScheduleStateStore,
        *,
        config: CadenceConfig | None = None,
        clock: Clock | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._state = state_store
        self._config = config or DEFAULT_CADENCE_CONFIG
        self._clock = clock or _utc_now
        self._telemetry = telemetry or TelemetrySink()
        self._locks = KeyedLocks()

    @property
    def config(self) -> CadenceConfig:
        return self._config

    def plan_for_session(
        self,
        session_id: str,
        closed_at: Any,
        config: Mapping[str, Any] | None = None,
    ) -> CadenceSchedule:
        """Compute and store the cadence for a freshly closed session."""
        _require_session_id(session_id)
        plan = compute_schedule(closed_at, self._effective_config(config), session_id=session_id)
        now = self._now()
        schedule = CadenceSchedule(
            session_id=session_id,
            session_closed_at=plan.closed_at,
            moderation_window=plan.moderation_window,
            batches=plan.batches,
            digest=plan.digest,
            created_at=now,
            updated_at=now,
        )
        schedule.history.append(
            HistoryEntry(
                sequence=1,
                type="cadence.initialised",
                occurred_at=now,
                payload=_plan_payload(plan),
            )
        )
        with self._locks.hold(session_id):
            created = self._state.insert_schedule(session_id, schedule.model_dump_json(), now=now)
        if not created:
            raise ConflictError("publishing_state_session_exists")

        logger.info("Planned cadence for session %s", session_id)
        self._telemetry.record_cadence_planned(
            session_id=session_id, replanned=False, **_plan_summary(plan)
        )
        return schedule

    def replan_for_session(
        self,
        session_id: str,
        closed_at: Any,
        config: Mapping[str, Any] | None = None,
    ) -> CadenceSchedule:
        """Explicit reset: recompute the cadence, drop overrides, keep history."""
        _require_session_id(session_id)
        plan = compute_schedule(closed_at, self._effective_config(config), session_id=session_id)

        def mutate(schedule: CadenceSchedule) -> HistoryEvent:
            schedule.session_closed_at = plan.closed_at
            schedule.moderation_window = plan.moderation_window
            schedule.batches = plan.batches
            schedule.digest = plan.digest
            schedule.overrides = []
            return "cadence.reinitialised", _plan_payload(plan)

        updated = self._mutate(session_id, mutate)
        self._telemetry.record_cadence_planned(
            session_id=session_id, replanned=True, **_plan_summary(plan)
        )
        return updated

    def get_schedule(self, session_id: str) -> CadenceSchedule | None:
        """Return an independent copy of the stored schedule, or None."""
        _require_session_id(session_id)
        row = self._state.get_schedule(session_id)
        if row is None:
            return None
        return CadenceSchedule.model_validate_json(row.state_json)

    def require_schedule(self, session_id: str) -> CadenceSchedule:
        schedule = self.get_schedule(session_id)
        if schedule is None:
            raise NotFoundError("publishing_state_session_missing")
        return schedule

    def delete_schedule(self, session_id: str) -> None:
        _require_session_id(session_id)
        with self._locks.hold(session_id):
            self._state.delete_schedule(session_id)

    def apply_override(
        self,
        session_id: str,
        override: OverrideRequest | Mapping[str, Any],
    ) -> CadenceSchedule:
        """Defer a batch (or the digest) within the configured limit.

        The limit applies to each override relative to the run-time in force
        when it is applied, so overrides may stack.
        """
        request = _coerce_override(override)
        limit_minutes = self._config.max_override_defer_minutes
        max_defer = timedelta(minutes=limit_minutes)
        applied: dict[str, Any] = {}

        def exceeds_limit() -> PolicyViolationError:
            return PolicyViolationError(
                "publishing_override_exceeds_limit", detail=f"max {limit_minutes} minutes"
            )

        def mutate(schedule: CadenceSchedule) -> HistoryEvent:
            target, batch = _resolve_override_target(schedule, request.target)
            current = batch.run_at if batch is not None else schedule.digest.run_at
            if request.defer_until is not None:
                defer_until = resolve_instant(request.defer_until)
            else:
                minutes = float(request.defer_by_minutes or 0)
                # Limit is checked before the timedelta is built.
                if math.isnan(minutes):
                    raise PreconditionError("publishing_override_requires_future_time")
                if minutes > limit_minutes:
                    raise exceeds_limit()
                try:
                    defer_until = current + timedelta(minutes=minutes)
                except OverflowError as exc:
                    raise PreconditionError("publishing_override_requires_future_time") from exc

            if defer_until <= current:
                raise PreconditionError("publishing_override_requires_future_time")
            if defer_until - current > max_defer:
                raise exceeds_limit()

            record = OverrideRecord(
                override_id=str(uuid4()),
                target=target,
                batch_id=batch.batch_id if batch is not None else None,
                defer_by_minutes=(defer_until - current).total_seconds() / 60,
                defer_until=defer_until,
                previous_run_at=current,
                actor=request.actor or "admin.system",
                reason=request.reason,
                applied_at=self._now(),
            )
            if batch is not None:
                batch.run_at = defer_until
                batch.override = record
            else:
                schedule.digest.run_at = defer_until
                schedule.digest.override = record
            schedule.overrides.append(record)
            applied.update(record.model_dump())
            return "cadence.override.applied", record.model_dump(mode="json")

        updated = self._mutate(session_id, mutate)
        logger.info(
            "Override applied to %s for session %s by %s",
            applied.get("target"),
            session_id,
            applied.get("actor"),
        )
        self._telemetry.record_override_applied(session_id=session_id, **applied)
        return updated

    def update_batch_status(
        self,
        session_id: str,
        batch_id: str,
        status: str,
        metadata: BatchStatusUpdate | Mapping[str, Any] | None = None,
    ) -> CadenceSchedule:
        """Move a batch along scheduled -> ready -> published (or failed)."""
        if not batch_id or not status:
            raise PreconditionError("publishing_batch_status_requires_identifiers")
        if status not in _BATCH_TRANSITIONS:
            raise PreconditionError("publishing_batch_invalid_status", detail=status)
        normalized = normalize_batch_metadata(metadata)
        transition: dict[str, Any] = {}

        def mutate(schedule: CadenceSchedule) -> HistoryEvent:
            batch = schedule.find_batch(batch_id)
            if batch is None:
                raise NotFoundError("publishing_batch_missing", detail=batch_id)
            previous = batch.status
            if status not in _BATCH_TRANSITIONS[previous]:
                raise PreconditionError(
                    "publishing_batch_invalid_transition",
                    detail=f"{previous} -> {status}",
                )
            batch.status = status
            for key, value in normalized.items():
                setattr(batch, key, value)
            transition.update(
                previous_status=previous,
                delta_count=batch.delta_count,
                latency_ms=batch.latency_ms,
            )
            return "cadence.batch.status", {
                "batch_id": batch_id,
                "status": status,
                "previous_status": previous,
                "metadata": _json_metadata(normalized),
            }

        updated = self._mutate(session_id, mutate)
        self._telemetry.record_batch_status(
            session_id=session_id, batch_id=batch_id, status=status, **transition
        )
        return updated

    def _mutate(
        self,
        session_id: str,
        mutator: Callable[[CadenceSchedule], HistoryEvent],
    ) -> CadenceSchedule:
        _require_session_id(session_id)
        with self._locks.hold(session_id):
            row = self._state.get_schedule(session_id)
            if row is None:
                raise NotFoundError("publishing_state_session_missing")
            schedule = CadenceSchedule.model_validate_json(row.state_json)
            event_type, payload = mutator(schedule)

            now = self._now()
            last = schedule.history[-1] if schedule.history else None
            occurred_at = max(now, last.occurred_at) if last else now
            schedule.history.append(
                HistoryEntry(
                    sequence=(last.sequence + 1) if last else 1,
                    type=event_type,
                    occurred_at=occurred_at,
                    payload=payload,
                )
            )
            schedule.updated_at = occurred_at
            self._state.update_schedule(
                session_id,
                schedule.model_dump_json(),
                expected_version=row.version,
                now=now,
            )
        return schedule

    def _effective_config(self, overrides: Mapping[str, Any] | None) -> CadenceConfig:
        try:
            return self._config.merged(dict(overrides) if overrides else None)
        except ValidationError as exc:
            raise PreconditionError("publishing_cadence_invalid_config", detail=str(exc)) from exc

    def _now(self) -> datetime:
        return resolve_instant(self._clock())


def normalize_batch_metadata(
    metadata: BatchStatusUpdate | Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Keep the known batch metadata fields, coercing timestamps and counts.

    Counts must be whole numbers; ``2.0`` is accepted, ``2.7`` is rejected.
    """
    if metadata is None:
        return {}
    if isinstance(metadata, BatchStatusUpdate):
        raw: Mapping[str, Any] = metadata.metadata()
    else:
        raw = metadata

    normalized: dict[str, Any] = {}
    for key in ("prepared_at", "published_at"):
        if raw.get(key):
            normalized[key] = resolve_instant(raw[key])
    for key in ("delta_count", "latency_ms"):
        value = raw.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if not isinstance(value, (int, float)) or value < 0:
            raise PreconditionError("publishing_batch_invalid_metadata", detail=key)
        if isinstance(value, float) and not value.is_integer():
            raise PreconditionError("publishing_batch_invalid_metadata", detail=key)
        normalized[key] = int(value)
    if raw.get("notes"):
        normalized["notes"] = str(raw["notes"])
    return normalized


def _json_metadata(normalized: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in normalized.items()
        if key in _METADATA_FIELDS
    }


def _coerce_override(override: OverrideRequest | Mapping[str, Any]) -> OverrideRequest:
    if isinstance(override, OverrideRequest):
        return override
    try:
        return OverrideRequest.model_validate(dict(override or {}))
    except ValidationError as exc:
        raise PreconditionError("publishing_override_invalid", detail=str(exc)) from exc


def _resolve_override_target(
    schedule: CadenceSchedule, target: str | None
) -> tuple[str, Batch | None]:
    if target == DIGEST_TARGET:
        return DIGEST_TARGET, None
    if target is None:
        pending = schedule.pending_batches()
        if not pending:
            raise PreconditionError("publishing_override_no_pending_batch")
        return pending[0].batch_id, pending[0]
    batch = schedule.find_batch(target)
    if batch is None:
        raise NotFoundError("publishing_batch_missing", detail=target)
    if batch.status in TERMINAL_BATCH_STATUSES:
        raise PreconditionError("publishing_override_batch_closed", detail=target)
    return batch.batch_id, batch


def _require_session_id(session_id: str) -> None:
    if not session_id or not str(session_id).strip():
        raise PreconditionError("publishing_cadence_requires_session_id")


def _plan_summary(plan: CadencePlan) -> dict[str, Any]:
    return {
        "moderation_start_at": plan.moderation_window.start_at,
        "moderation_end_at": plan.moderation_window.end_at,
        "batch_run_at": plan.batches[0].run_at if plan.batches else None,
        "digest_run_at": plan.digest.run_at,
    }


def _plan_payload(plan: CadencePlan) -> dict[str, Any]:
    payload = {"session_closed_at": plan.closed_at, **_plan_summary(plan)}
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in payload.items()
    }


__all__ = ["CadenceScheduleStore", "DIGEST_TARGET", "normalize_batch_metadata"]
