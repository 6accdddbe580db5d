"""Wire stores and services from settings for the API and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from core.config import Settings, get_settings
from jobs.coordinator import ClosureJobTracker, Publisher
from moderation.queue_store import ModerationQueueStore
from persistence.sqlite_store import SqliteStore
from publishing.schedule_store import CadenceScheduleStore
from services.closure import ClosureWorkflow
from services.publishing import PublishingCoordinator
from telemetry.sink import Emitter, TelemetrySink


@dataclass(frozen=True)
class ContinuityServices:
    settings: Settings
    store: SqliteStore
    schedules: CadenceScheduleStore
    queues: ModerationQueueStore
    publishing: PublishingCoordinator
    jobs: ClosureJobTracker
    closure: ClosureWorkflow
    telemetry: TelemetrySink


def build_services(
    settings: Settings | None = None,
    *,
    clock: Callable[[], datetime] | None = None,
    emitter: Emitter | None = None,
    publisher: Publisher | None = None,
) -> ContinuityServices:
    settings = settings or get_settings()
    telemetry = TelemetrySink(emitter)
    store = SqliteStore(settings.state_db_path)
    schedules = CadenceScheduleStore(
        store, config=settings.cadence_config(), clock=clock, telemetry=telemetry
    )
    queues = ModerationQueueStore(store, clock=clock)
    publishing = PublishingCoordinator(schedules, queues, clock=clock, telemetry=telemetry)
    jobs = ClosureJobTracker(publisher=publisher, clock=clock)
    closure = ClosureWorkflow(
        jobs, publishing, telemetry=telemetry, sla_ms=settings.offline_job_sla_ms
    )
    return ContinuityServices(
        settings=settings,
        store=store,
        schedules=schedules,
        queues=queues,
        publishing=publishing,
        jobs=jobs,
        closure=closure,
        telemetry=telemetry,
    )


__all__ = ["ContinuityServices", "build_services"]
