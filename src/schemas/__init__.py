"""Schema package for external and internal contracts."""

from .cadence import CadenceConfig, CadenceSchedule
from .jobs import OfflineJob, OfflineJobEvent
from .moderation import ContentDelta, ModerationQueueState
from .requests import BatchStatusUpdate, ClosureEvent, OverrideRequest

__all__ = [
    "BatchStatusUpdate",
    "CadenceConfig",
    "CadenceSchedule",
    "ClosureEvent",
    "ContentDelta",
    "ModerationQueueState",
    "OfflineJob",
    "OfflineJobEvent",
    "OverrideRequest",
]
