"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, TypeVar

import typer
from pydantic import BaseModel

from core.config import Settings, get_settings
from core.errors import ContinuityError
from services.runtime import ContinuityServices, build_services

T = TypeVar("T")


def emit_json(data: Any) -> None:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def parse_json_option(value: str | None, *, option: str) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{option} is not valid JSON: {exc}") from exc


def load_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def open_services(ctx: typer.Context) -> ContinuityServices:
    """Services bound to ``--db`` when given, otherwise to the configured database."""
    db_path = (ctx.obj or {}).get("db_path")
    settings = get_settings()
    if db_path is not None:
        settings = Settings(**{**settings.model_dump(), "state_db_path": str(db_path)})
    return build_services(settings)


def run_action(action: Callable[[], T]) -> T:
    """Run ``action``, turning domain errors into a JSON error line and exit code 1."""
    try:
        return action()
    except ContinuityError as exc:
        typer.echo(json.dumps(exc.to_payload(), ensure_ascii=False), err=True)
        raise typer.Exit(code=1) from exc


__all__ = ["emit_json", "load_json_file", "open_services", "parse_json_option", "run_action"]
