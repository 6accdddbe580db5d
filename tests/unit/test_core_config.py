"""Unit tests for the core configuration module."""

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "CONTINUITY_STATE_DB",
        "MODERATION_DELAY_MINUTES",
        "MODERATION_WINDOW_MINUTES",
        "MODERATION_ESCALATION_MINUTES",
        "DIGEST_HOUR",
        "DIGEST_MINUTE",
        "DIGEST_TIMEZONE_OFFSET_MINUTES",
        "MAX_OVERRIDE_DEFER_MINUTES",
        "OFFLINE_JOB_SLA_MS",
        "CONTINUITY_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults():
    """Test that Settings initializes with expected defaults."""
    settings = Settings()

    assert settings.state_db_path == "data/continuity/state.sqlite"
    assert settings.moderation_delay_minutes == 15
    assert settings.moderation_window_minutes == 45
    assert settings.moderation_escalation_minutes == [30, 40]
    assert settings.digest_hour == 2
    assert settings.digest_minute == 0
    assert settings.timezone_offset_minutes == 0
    assert settings.max_override_defer_minutes == 720
    assert settings.offline_job_sla_ms == 600000
    assert settings.log_level == "INFO"


def test_settings_with_env_vars(monkeypatch):
    """Test that Settings properly loads values from environment variables."""
    monkeypatch.setenv("CONTINUITY_STATE_DB", "/tmp/other.sqlite")
    monkeypatch.setenv("MODERATION_DELAY_MINUTES", "5")
    monkeypatch.setenv("MODERATION_ESCALATION_MINUTES", "[10, 20]")
    monkeypatch.setenv("MAX_OVERRIDE_DEFER_MINUTES", "60")

    settings = Settings()

    assert settings.state_db_path == "/tmp/other.sqlite"
    assert settings.moderation_delay_minutes == 5
    assert settings.moderation_escalation_minutes == [10, 20]
    cadence = settings.cadence_config()
    assert cadence.moderation_delay_minutes == 5
    assert cadence.moderation_escalation_minutes == [10, 20]
    assert cadence.max_override_defer_minutes == 60


def test_settings_read_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("DIGEST_HOUR=4\nUNRELATED_KEY=1\n", encoding="utf-8")

    assert Settings().digest_hour == 4


def test_invalid_cadence_settings_are_rejected(monkeypatch):
    monkeypatch.setenv("MODERATION_ESCALATION_MINUTES", "[40, 30]")

    with pytest.raises(ValidationError):
        Settings().cadence_config()


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
