from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from cli.app import create_cli_app
from continuity import __version__

CLOSED_AT = "2025-11-05T10:00:00Z"

runner = CliRunner()


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def cli(console):
    return create_cli_app(console)


@pytest.fixture
def db(tmp_path: Path) -> str:
    return str(tmp_path / "cli-state.sqlite")


def _invoke(cli, db: str, *args: str):
    return runner.invoke(cli, ["--db", db, *args])


def test_version_flag(cli, console) -> None:
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert f"continuity {__version__}" in console.file.getvalue()


def test_preview_prints_cadence_without_storing(cli, db) -> None:
    result = _invoke(cli, db, "preview", CLOSED_AT, "--session", "s1")

    assert result.exit_code == 0
    plan = json.loads(result.stdout)
    assert plan["batches"][0]["batch_id"] == "s1-batch-0"
    assert _invoke(cli, db, "show", "s1").exit_code == 1


def test_preview_rejects_invalid_config(cli, db) -> None:
    result = _invoke(cli, db, "preview", CLOSED_AT, "--config", '{"moderation_window_minutes": 0}')

    assert result.exit_code == 2


def test_plan_show_and_conflict(cli, db) -> None:
    planned = _invoke(cli, db, "plan", "s1", CLOSED_AT)
    assert planned.exit_code == 0
    assert json.loads(planned.stdout)["session_id"] == "s1"

    shown = _invoke(cli, db, "show", "s1")
    assert shown.exit_code == 0
    assert json.loads(shown.stdout)["history"][0]["type"] == "cadence.initialised"

    assert _invoke(cli, db, "plan", "s1", CLOSED_AT).exit_code == 1
    assert _invoke(cli, db, "plan", "s1", CLOSED_AT, "--replan").exit_code == 0


def test_override_requires_one_deferral(cli, db) -> None:
    _invoke(cli, db, "plan", "s1", CLOSED_AT)

    assert _invoke(cli, db, "override", "s1").exit_code == 2
    assert (
        _invoke(cli, db, "override", "s1", "--minutes", "5", "--until", CLOSED_AT).exit_code == 2
    )


def test_override_and_batch_status(cli, db) -> None:
    _invoke(cli, db, "plan", "s1", CLOSED_AT)

    deferred = _invoke(cli, db, "override", "s1", "--minutes", "30", "--actor", "moderator.ana")
    assert deferred.exit_code == 0
    assert json.loads(deferred.stdout)["overrides"][0]["actor"] == "moderator.ana"

    too_far = _invoke(cli, db, "override", "s1", "--minutes", "9999")
    assert too_far.exit_code == 1

    ready = _invoke(cli, db, "batch-status", "s1", "s1-batch-0", "ready", "--delta-count", "4")
    assert ready.exit_code == 0
    assert json.loads(ready.stdout)["batches"][0]["delta_count"] == 4


def test_close_projects_queue(cli, db, tmp_path: Path, console) -> None:
    deltas = tmp_path / "deltas.json"
    deltas.write_text(
        json.dumps(
            [
                {"delta_id": "d1", "safety": {"requires_moderation": True, "reasons": ["lore"]}},
                {"delta_id": "d2"},
            ]
        ),
        encoding="utf-8",
    )

    closed = _invoke(cli, db, "close", "s1", CLOSED_AT, "--deltas", str(deltas))
    assert closed.exit_code == 0
    job = json.loads(closed.stdout)
    assert job["status"] == "completed"
    assert job["result"]["status"] == "awaiting_moderation"

    shown = _invoke(cli, db, "queue-show", "s1")
    assert shown.exit_code == 0
    assert json.loads(shown.stdout)["pending_count"] == 1

    listed = _invoke(cli, db, "queues", "--json")
    assert [record["session_id"] for record in json.loads(listed.stdout)] == ["s1"]

    assert _invoke(cli, db, "queues").exit_code == 0
    assert "s1" in console.file.getvalue()


def test_queue_project_and_delete(cli, db, tmp_path: Path) -> None:
    deltas = tmp_path / "deltas.json"
    deltas.write_text(json.dumps([{"delta_id": "d1"}]), encoding="utf-8")

    projected = _invoke(cli, db, "queue-project", "s2", str(deltas))
    assert projected.exit_code == 0
    assert json.loads(projected.stdout)["pending_count"] == 0

    deleted = _invoke(cli, db, "queue-delete", "s2")
    assert json.loads(deleted.stdout) == {"session_id": "s2", "deleted": True}
    assert _invoke(cli, db, "queue-show", "s2").exit_code == 1
