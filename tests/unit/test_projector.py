"""Unit tests for the moderation queue projector."""

from copy import deepcopy
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import PreconditionError
from moderation.projector import countdown_ms, project
from publishing.cadence import compute_schedule
from schemas.cadence import CadenceSchedule
from schemas.moderation import ContentDelta

UTC = timezone.utc
CLOSED_AT = datetime(2025, 11, 5, 10, 0, tzinfo=UTC)
NOW = datetime(2025, 11, 5, 10, 5, tzinfo=UTC)


def _schedule(session_id="session-1"):
    plan = compute_schedule(CLOSED_AT, session_id=session_id)
    return CadenceSchedule(
        session_id=session_id,
        session_closed_at=plan.closed_at,
        moderation_window=plan.moderation_window,
        batches=plan.batches,
        digest=plan.digest,
    )


def _delta(delta_id, *, moderated=True, reasons=(), status=None, **extra):
    payload = {
        "delta_id": delta_id,
        "entity_id": f"entity-{delta_id}",
        "entity_type": "npc",
        "canonical_name": f"Name {delta_id}",
        "proposed_changes": {"mood": "grim"},
        "safety": {"requires_moderation": moderated, "reasons": list(reasons)},
        **extra,
    }
    if status is not None:
        payload["status"] = status
    return payload


def test_only_moderated_deltas_become_items():
    state = project(
        session_id="session-1",
        deltas=[_delta("d1"), _delta("d2", moderated=False), {"delta_id": "d3"}],
        schedule=_schedule(),
        now=NOW,
    )

    assert [item.delta_id for item in state.items] == ["d1"]
    item = state.items[0]
    assert item.status == "needs-review"
    assert item.blocking is True
    assert item.entity_id == "entity-d1"
    assert item.proposed_changes == {"mood": "grim"}
    assert item.created_at == NOW


def test_item_fields_follow_window():
    schedule = _schedule()
    state = project(
        session_id="session-1",
        deltas=[
            _delta(
                "d1",
                reasons=["violence", "canon_conflict", "violence"],
                capability_refs=["cap.magic"],
                created_at="2025-11-05T09:59:00Z",
            )
        ],
        schedule=schedule,
        now=NOW,
    )

    item = state.items[0]
    assert item.reasons == ["canon_conflict", "violence"]
    assert item.capability_violations == ["cap.magic"]
    assert item.created_at == datetime(2025, 11, 5, 9, 59, tzinfo=UTC)
    assert item.deadline_at == schedule.moderation_window.end_at
    assert item.window_start_at == schedule.moderation_window.start_at
    assert item.escalations_at == schedule.moderation_window.escalations
    assert item.countdown_ms == 55 * 60 * 1000


def test_countdown_never_negative():
    state = project(
        session_id="session-1",
        deltas=[_delta("d1")],
        schedule=_schedule(),
        now=NOW + timedelta(hours=3),
    )

    assert state.items[0].countdown_ms == 0
    assert countdown_ms(None, NOW) is None
    assert countdown_ms(NOW - timedelta(seconds=1), NOW) == 0


@pytest.mark.parametrize(
    "statuses",
    [
        [],
        ["resolved"],
        [None, "resolved", "escalated"],
        [None, None, None, "resolved", "resolved"],
        ["approved", "rejected", "needs-review"],
    ],
)
@pytest.mark.parametrize("minutes", [0, 30, 55, 60, 240])
def test_pending_count_matches_blocking_items(statuses, minutes):
    deltas = [_delta(f"d{i}", status=status) for i, status in enumerate(statuses)]
    state = project(
        session_id="session-1",
        deltas=deltas + [_delta("skip", moderated=False)],
        schedule=_schedule(),
        now=NOW + timedelta(minutes=minutes),
    )

    assert state.pending_count == sum(1 for item in state.items if item.blocking)
    assert state.pending_count == sum(1 for status in statuses if status != "resolved")
    assert all(item.countdown_ms >= 0 for item in state.items)


def test_window_status_is_derived():
    schedule = _schedule()

    pending = project(session_id="s", deltas=[_delta("d1")], schedule=schedule, now=NOW)
    clear = project(
        session_id="s", deltas=[_delta("d1", status="resolved")], schedule=schedule, now=NOW
    )

    assert pending.window.status == "awaiting_review"
    assert clear.window.status == "clear"
    assert clear.window.updated_at == NOW
    assert clear.window.end_at == schedule.moderation_window.end_at


def test_explicit_window_status_wins():
    schedule = _schedule()
    schedule.moderation_window.status = "escalated"

    state = project(session_id="s", deltas=[], schedule=schedule, now=NOW)

    assert state.window.status == "escalated"


def test_cadence_projection():
    schedule = _schedule()
    state = project(session_id="session-1", deltas=[], schedule=schedule, now=NOW)

    assert state.cadence.next_batch_at == datetime(2025, 11, 5, 11, 0, tzinfo=UTC)
    assert state.cadence.next_digest_at == datetime(2025, 11, 6, 2, 0, tzinfo=UTC)
    assert state.cadence.batches == schedule.batches
    assert state.cadence.batches[0] is not schedule.batches[0]

    schedule.batches[0].status = "published"
    after = project(session_id="session-1", deltas=[], schedule=schedule, now=NOW)
    assert after.cadence.next_batch_at is None


def test_projection_does_not_mutate_inputs():
    schedule = _schedule()
    deltas = [_delta("d1", reasons=["b", "a", "b"]), _delta("d2", moderated=False)]
    typed = ContentDelta.model_validate(_delta("d3", reasons=["z"]))
    schedule_before = schedule.model_dump()
    deltas_before = deepcopy(deltas)
    typed_before = typed.model_dump()

    state = project(session_id="s", deltas=[*deltas, typed], schedule=schedule, now=NOW)
    state.items[0].proposed_changes["mood"] = "cheerful"
    state.cadence.batches[0].run_at = NOW

    assert schedule.model_dump() == schedule_before
    assert deltas == deltas_before
    assert typed.model_dump() == typed_before


def test_projection_without_schedule():
    state = project(session_id="s", deltas=[_delta("d1")], schedule=None, now=NOW)

    assert state.items[0].countdown_ms is None
    assert state.items[0].deadline_at is None
    assert state.window.status == "awaiting_review"
    assert state.cadence.next_batch_at is None
    assert state.generated_at == NOW


@pytest.mark.parametrize("session_id", ["", None])
def test_projection_requires_session(session_id):
    with pytest.raises(PreconditionError) as excinfo:
        project(session_id=session_id, deltas=[], schedule=None, now=NOW)

    assert excinfo.value.code == "moderation_queue_state_requires_session"
