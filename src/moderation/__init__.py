"""Moderation queue projection and storage."""

from moderation.projector import project
from moderation.queue_store import ModerationQueueStore

__all__ = ["ModerationQueueStore", "project"]
