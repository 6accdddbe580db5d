"""Core configuration, errors and shared utilities."""

from dotenv import load_dotenv

from .config import Settings, get_settings
from .errors import (
    ConflictError,
    ContinuityError,
    NotFoundError,
    PolicyViolationError,
    PreconditionError,
)

load_dotenv()

__all__ = [
    "ConflictError",
    "ContinuityError",
    "NotFoundError",
    "PolicyViolationError",
    "PreconditionError",
    "Settings",
    "get_settings",
]
