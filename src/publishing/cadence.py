"""Cadence clock policy: closure instant -> moderation window, batches, digest.

The policy is a pure function of the closure instant and the config. It
never reads the wall clock, so it is safe to call from any thread.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from core.errors import PreconditionError
from schemas.cadence import (
    Batch,
    CadenceConfig,
    CadencePlan,
    Digest,
    ModerationWindow,
)

DEFAULT_CADENCE_CONFIG = CadenceConfig()

LORE_BATCH_TYPE = "hourly"


def resolve_instant(value: Any) -> datetime:
    """Coerce a datetime, ISO-8601 string or epoch seconds into an aware UTC datetime.

    Naive datetimes are read as UTC. Anything non-finite or unparsable is a
    programmer error and fails immediately.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, bool):
        raise PreconditionError("publishing_cadence_invalid_date")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise PreconditionError("publishing_cadence_invalid_date")
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise PreconditionError("publishing_cadence_invalid_date") from exc
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise PreconditionError(
                "publishing_cadence_invalid_date", detail=value
            ) from exc
        return resolve_instant(parsed)
    raise PreconditionError("publishing_cadence_invalid_date")


def compute_digest_run(closed_at: datetime, config: CadenceConfig) -> datetime:
    """Digest time on the calendar day strictly after the closure's day.

    The calendar day is taken in the digest timezone (``timezone_offset_minutes``
    east of UTC). A closure at 01:30 still targets tomorrow's digest, never
    today's, even though today's digest time has not passed yet.
    """
    offset = timedelta(minutes=config.timezone_offset_minutes)
    local_day: date = (closed_at + offset).date()
    next_day = local_day + timedelta(days=1)
    local_run = datetime.combine(
        next_day,
        time(hour=config.digest_hour, minute=config.digest_minute),
        tzinfo=timezone.utc,
    )
    return local_run - offset


def compute_schedule(
    closed_at: Any,
    config: CadenceConfig | None = None,
    *,
    session_id: str | None = None,
) -> CadencePlan:
    """Compute the moderation window, lore batch and digest for one closure."""
    cfg = config or DEFAULT_CADENCE_CONFIG
    closed = resolve_instant(closed_at)

    start_at = closed + timedelta(minutes=cfg.moderation_delay_minutes)
    end_at = start_at + timedelta(minutes=cfg.moderation_window_minutes)
    escalations = [
        start_at + timedelta(minutes=offset) for offset in cfg.moderation_escalation_minutes
    ]

    window = ModerationWindow(
        start_at=start_at,
        end_at=end_at,
        escalations=escalations,
    )
    batch = Batch(
        batch_id=f"{session_id}-batch-0" if session_id else "batch-0",
        type=LORE_BATCH_TYPE,
        run_at=end_at,
    )
    digest = Digest(run_at=compute_digest_run(closed, cfg))
    return CadencePlan(
        closed_at=closed,
        moderation_window=window,
        batches=[batch],
        digest=digest,
    )


__all__ = [
    "DEFAULT_CADENCE_CONFIG",
    "LORE_BATCH_TYPE",
    "compute_digest_run",
    "compute_schedule",
    "resolve_instant",
]
