"""Offline job lifecycle events and the closure job tracker."""

from jobs.coordinator import ClosureJobTracker
from jobs.lifecycle import completed, event_for, failed, queued, started

__all__ = ["ClosureJobTracker", "completed", "event_for", "failed", "queued", "started"]
