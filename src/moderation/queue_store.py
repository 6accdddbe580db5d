"""Durable moderation queue snapshots keyed by session.

Writes are strict: a session id and a well-formed state are required.
Reads are permissive: missing or malformed nested fields decode to their
structural defaults so older rows stay readable.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from core.errors import PreconditionError
from persistence.contracts import QueueStateStore
from persistence.locks import KeyedLocks
from persistence.models import QueueRow
from publishing.cadence import resolve_instant
from schemas.moderation import (
    CadenceProjection,
    ModerationQueueItem,
    ModerationQueueRecord,
    ModerationQueueState,
    QueueWindow,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ModerationQueueStore:
    def __init__(
        self,
        state_store: QueueStateStore,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._state = state_store
        self._clock = clock or _utc_now
        self._locks = KeyedLocks()

    def save_queue(
        self,
        session_id: str,
        state: ModerationQueueState | Mapping[str, Any] | None,
    ) -> ModerationQueueRecord:
        """Upsert the latest snapshot for ``session_id`` and stamp ``updated_at``."""
        normalized = encode_queue_state(session_id, state)
        updated_at = resolve_instant(self._clock())
        normalized.updated_at = updated_at
        with self._locks.hold(session_id):
            self._state.upsert_queue(
                session_id,
                normalized.model_dump_json(),
                pending_count=normalized.pending_count,
                updated_at=updated_at,
            )
        logger.debug(
            "Saved moderation queue for %s (%d pending)", session_id, normalized.pending_count
        )
        return ModerationQueueRecord(
            session_id=session_id,
            pending_count=normalized.pending_count,
            updated_at=updated_at,
            state=normalized,
        )

    def get_queue(self, session_id: str) -> ModerationQueueRecord | None:
        _require_session_id(session_id)
        row = self._state.get_queue(session_id)
        return _row_to_record(row) if row else None

    def list_queues(self) -> list[ModerationQueueRecord]:
        """All stored snapshots, most recently updated first."""
        return [_row_to_record(row) for row in self._state.list_queues()]

    def delete_queue(self, session_id: str) -> None:
        _require_session_id(session_id)
        with self._locks.hold(session_id):
            self._state.delete_queue(session_id)


def encode_queue_state(
    session_id: str,
    state: ModerationQueueState | Mapping[str, Any] | None,
) -> ModerationQueueState:
    _require_session_id(session_id)
    if state is None:
        raise PreconditionError("moderation_queue_store_requires_state")
    if isinstance(state, ModerationQueueState):
        normalized = state.model_copy(deep=True)
    elif isinstance(state, Mapping):
        try:
            normalized = ModerationQueueState.model_validate(dict(state))
        except ValidationError as exc:
            raise PreconditionError(
                "moderation_queue_store_invalid_state", detail=str(exc)
            ) from exc
    else:
        raise PreconditionError("moderation_queue_store_requires_state")

    normalized.session_id = session_id
    normalized.pending_count = len(normalized.blocking_items())
    return normalized


def decode_queue_state(raw: Any, *, session_id: str | None = None) -> ModerationQueueState:
    """Rebuild a queue snapshot, defaulting anything missing or malformed."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Unreadable moderation queue state for %s", session_id)
            raw = {}
    if not isinstance(raw, Mapping):
        raw = {}

    items: list[ModerationQueueItem] = []
    raw_items = raw.get("items")
    for entry in raw_items if isinstance(raw_items, list) else []:
        if not isinstance(entry, Mapping):
            continue
        try:
            items.append(ModerationQueueItem.model_validate(dict(entry)))
        except ValidationError:
            logger.warning("Skipping malformed moderation item for %s", session_id)

    pending = raw.get("pending_count")
    return ModerationQueueState(
        session_id=raw.get("session_id") or session_id,
        generated_at=_optional_instant(raw.get("generated_at")),
        updated_at=_optional_instant(raw.get("updated_at")),
        pending_count=pending if isinstance(pending, int) and not isinstance(pending, bool) else 0,
        items=items,
        window=_decode_nested(QueueWindow, raw.get("window"), session_id),
        cadence=_decode_nested(CadenceProjection, raw.get("cadence"), session_id),
    )


def _decode_nested(model: Any, value: Any, session_id: str | None) -> Any:
    if not isinstance(value, Mapping):
        return None
    try:
        return model.model_validate(dict(value))
    except ValidationError:
        logger.warning("Dropping malformed %s for %s", model.__name__, session_id)
        return None


def _optional_instant(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return resolve_instant(value)
    except PreconditionError:
        return None


def _row_to_record(row: QueueRow) -> ModerationQueueRecord:
    state = decode_queue_state(row.state_json, session_id=row.session_id)
    return ModerationQueueRecord(
        session_id=row.session_id,
        pending_count=row.pending_count if row.pending_count is not None else state.pending_count,
        updated_at=row.updated_at or state.updated_at,
        state=state,
    )


def _require_session_id(session_id: str) -> None:
    if not session_id or not str(session_id).strip():
        raise PreconditionError("moderation_queue_store_requires_session_id")


__all__ = [
    "ModerationQueueStore",
    "decode_queue_state",
    "encode_queue_state",
]
