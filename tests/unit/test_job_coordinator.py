"""Unit tests for the closure job tracker."""

from datetime import datetime, timezone

import pytest

from core.errors import ConflictError, NotFoundError, PreconditionError
from jobs.coordinator import ClosureJobTracker

UTC = timezone.utc


def _timeline(*instants):
    remaining = list(instants)
    fallback = instants[-1]
    return lambda: remaining.pop(0) if remaining else fallback


def test_enqueue_publishes_and_notifies_listeners():
    published = []
    received = []
    clock = _timeline(datetime(2025, 11, 4, 0, 0, tzinfo=UTC))
    tracker = ClosureJobTracker(
        publisher=lambda event, payload: published.append((event, payload)), clock=clock
    )
    tracker.on_job_queued(received.append)

    job = tracker.enqueue_closure("session-1", audit_ref="audit-abc")

    assert job.status == "queued"
    assert job.attempts == 0
    assert job.audit_ref == "audit-abc"
    assert job.enqueued_at == datetime(2025, 11, 4, 0, 0, tzinfo=UTC)
    assert published == [
        (
            "offline.session_closure.queued",
            {
                "type": "offline.session_closure.queued",
                "job_id": job.job_id,
                "status": "queued",
                "attempts": 0,
                "session_id": "session-1",
                "enqueued_at": "2025-11-04T00:00:00Z",
            },
        )
    ]
    assert [item.job_id for item in received] == [job.job_id]


def test_job_moves_through_processing_to_completion():
    clock = _timeline(
        datetime(2025, 11, 4, 0, 0, tzinfo=UTC),
        datetime(2025, 11, 4, 0, 2, tzinfo=UTC),
        datetime(2025, 11, 4, 0, 5, tzinfo=UTC),
    )
    published = []
    tracker = ClosureJobTracker(publisher=lambda event, payload: published.append(event), clock=clock)

    job = tracker.enqueue_closure("session-42")
    started = tracker.start_job(job.job_id)
    completed = tracker.complete_job(job.job_id, {"delta_count": 3})

    assert started.status == "processing"
    assert started.attempts == 1
    assert started.started_at == datetime(2025, 11, 4, 0, 2, tzinfo=UTC)
    assert completed.status == "completed"
    assert completed.result == {"delta_count": 3}
    assert completed.completed_at == datetime(2025, 11, 4, 0, 5, tzinfo=UTC)
    assert completed.duration_ms == 180000
    assert published == [
        "offline.session_closure.queued",
        "offline.session_closure.started",
        "offline.session_closure.completed",
    ]
    assert tracker.get_job(job.job_id) == completed


def test_fail_job_records_error_metadata():
    tracker = ClosureJobTracker(clock=lambda: datetime(2025, 11, 4, tzinfo=UTC))
    job = tracker.enqueue_closure("session-77")
    tracker.start_job(job.job_id)

    failure = tracker.fail_job(job.job_id, RuntimeError("workflow exploded"))

    assert failure.status == "failed"
    assert failure.error.message == "workflow exploded"
    assert failure.error.type == "RuntimeError"
    assert failure.duration_ms == 0


def test_fail_job_from_queued_has_no_duration():
    tracker = ClosureJobTracker()
    job = tracker.enqueue_closure("session-1")

    failure = tracker.fail_job(job.job_id, "never started")

    assert failure.error.message == "never started"
    assert failure.duration_ms is None
    assert failure.started_at is None


@pytest.mark.parametrize(
    "steps, attempt",
    [
        (["start"], "start"),
        (["start", "complete"], "start"),
        (["start", "complete"], "fail"),
        (["start", "fail"], "complete"),
    ],
)
def test_jobs_only_move_forward(steps, attempt):
    tracker = ClosureJobTracker()
    job = tracker.enqueue_closure("session-1")
    actions = {
        "start": lambda: tracker.start_job(job.job_id),
        "complete": lambda: tracker.complete_job(job.job_id, {}),
        "fail": lambda: tracker.fail_job(job.job_id, "x"),
    }
    for step in steps:
        actions[step]()
    before = tracker.get_job(job.job_id)

    with pytest.raises(ConflictError) as excinfo:
        actions[attempt]()

    assert excinfo.value.code == "offline_job_invalid_transition"
    assert tracker.get_job(job.job_id) == before


def test_unknown_job():
    tracker = ClosureJobTracker()

    with pytest.raises(NotFoundError) as excinfo:
        tracker.start_job("missing")
    assert excinfo.value.code == "offline_job_missing"
    assert tracker.get_job("missing") is None


def test_enqueue_requires_session():
    with pytest.raises(PreconditionError):
        ClosureJobTracker().enqueue_closure("")


def test_reporting_failures_do_not_interrupt_jobs(caplog):
    def broken_publisher(event, payload):
        raise ConnectionError("socket closed")

    def broken_listener(job):
        raise RuntimeError("render failed")

    seen = []
    tracker = ClosureJobTracker(publisher=broken_publisher)
    tracker.on_job_queued(broken_listener)
    tracker.on_job_queued(seen.append)

    with caplog.at_level("ERROR", logger="jobs.coordinator"):
        job = tracker.enqueue_closure("session-1")
        tracker.start_job(job.job_id)
        completed = tracker.complete_job(job.job_id, {"ok": True})

    assert completed.status == "completed"
    assert len(seen) == 1
    assert "Job listener failed" in caplog.text
    assert "Publishing offline.session_closure.started failed" in caplog.text


def test_unsubscribe_stops_notifications():
    seen = []
    tracker = ClosureJobTracker()
    unsubscribe = tracker.on_job_queued(seen.append)

    tracker.enqueue_closure("s1")
    unsubscribe()
    unsubscribe()
    tracker.enqueue_closure("s2")

    assert [job.session_id for job in seen] == ["s1"]


def test_returned_jobs_are_copies():
    tracker = ClosureJobTracker()
    job = tracker.enqueue_closure("s1", closed_at="2025-11-04T00:00:00Z", reason="idle")
    job.status = "failed"

    listed = tracker.list_jobs()
    assert [entry.status for entry in listed] == ["queued"]
    assert listed[0].closed_at == datetime(2025, 11, 4, tzinfo=UTC)
    assert listed[0].reason == "idle"


def test_finished_jobs_beyond_cap_are_evicted_oldest_first():
    tracker = ClosureJobTracker(max_finished_jobs=2)
    jobs = [tracker.enqueue_closure(f"s{index}") for index in range(4)]
    for job in jobs[:3]:
        tracker.start_job(job.job_id)
    tracker.complete_job(jobs[0].job_id)
    tracker.fail_job(jobs[1].job_id, "composer down")
    finished = tracker.complete_job(jobs[2].job_id)

    assert finished.status == "completed"
    assert tracker.get_job(jobs[0].job_id) is None
    assert [job.session_id for job in tracker.list_jobs()] == ["s1", "s2", "s3"]
    assert tracker.get_job(jobs[3].job_id).status == "queued"
