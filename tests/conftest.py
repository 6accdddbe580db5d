# tests/conftest.py
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from api.deps import get_services
from api.main import app
from core.config import Settings
from moderation.queue_store import ModerationQueueStore
from persistence.sqlite_store import SqliteStore
from publishing.schedule_store import CadenceScheduleStore
from services.runtime import build_services
from telemetry.sink import TelemetrySink

CLOSED_AT = datetime(2025, 11, 5, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock; every call returns the current fake instant."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(CLOSED_AT + timedelta(minutes=5))


@pytest.fixture
def sqlite_store(tmp_path):
    return SqliteStore(tmp_path / "state.sqlite")


@pytest.fixture
def telemetry_events():
    return []


@pytest.fixture
def telemetry(telemetry_events):
    return TelemetrySink(lambda event, payload: telemetry_events.append((event, payload)))


@pytest.fixture
def schedule_store(sqlite_store, clock, telemetry):
    return CadenceScheduleStore(sqlite_store, clock=clock, telemetry=telemetry)


@pytest.fixture
def queue_store(sqlite_store, clock):
    return ModerationQueueStore(sqlite_store, clock=clock)


@pytest.fixture
def services(tmp_path, clock):
    settings = Settings(state_db_path=str(tmp_path / "api-state.sqlite"))
    return build_services(settings, clock=clock)


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
