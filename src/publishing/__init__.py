"""Publishing cadence: clock policy and schedule store."""

from publishing.cadence import compute_digest_run, compute_schedule, resolve_instant
from publishing.schedule_store import CadenceScheduleStore

__all__ = [
    "CadenceScheduleStore",
    "compute_digest_run",
    "compute_schedule",
    "resolve_instant",
]
