"""Persistence subsystem exports."""

from persistence.locks import KeyedLocks
from persistence.sqlite_store import SqliteStore

__all__ = ["KeyedLocks", "SqliteStore"]
