"""Command groups attached to the continuity CLI."""

from .cadence import register_cadence_commands
from .queues import register_queue_commands

__all__ = ["register_cadence_commands", "register_queue_commands"]
