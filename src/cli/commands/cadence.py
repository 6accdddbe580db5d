"""Cadence planning and override commands."""

from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError

from core.config import get_settings
from publishing.cadence import compute_schedule
from schemas.requests import OverrideRequest

from .shared import emit_json, open_services, parse_json_option, run_action


def register_cadence_commands(app: typer.Typer) -> None:
    """Attach cadence commands to the provided Typer application."""

    @app.command(help="Compute a cadence without storing it.")
    def preview(
        closed_at: str = typer.Argument(..., help="Session closure instant (ISO 8601)."),
        session_id: str = typer.Option("preview", "--session", help="Session id used for batch ids."),
        config: Optional[str] = typer.Option(None, "--config", help="JSON cadence overrides."),
    ) -> None:
        overrides = parse_json_option(config, option="--config")
        try:
            cadence = get_settings().cadence_config().merged(overrides)
        except ValidationError as exc:
            raise typer.BadParameter(f"--config is not a valid cadence: {exc}") from exc
        plan = run_action(lambda: compute_schedule(closed_at, cadence, session_id=session_id))
        emit_json(plan)

    @app.command(help="Plan and store the cadence for a closed session.")
    def plan(
        ctx: typer.Context,
        session_id: str = typer.Argument(...),
        closed_at: str = typer.Argument(..., help="Session closure instant (ISO 8601)."),
        config: Optional[str] = typer.Option(None, "--config", help="JSON cadence overrides."),
        replan: bool = typer.Option(False, "--replan", help="Reset an existing schedule."),
    ) -> None:
        overrides = parse_json_option(config, option="--config")
        store = open_services(ctx).schedules
        action = store.replan_for_session if replan else store.plan_for_session
        schedule = run_action(lambda: action(session_id, closed_at, overrides))
        emit_json(schedule)

    @app.command(help="Show the stored cadence for a session.")
    def show(ctx: typer.Context, session_id: str = typer.Argument(...)) -> None:
        store = open_services(ctx).schedules
        emit_json(run_action(lambda: store.require_schedule(session_id)))

    @app.command(help="Defer a batch or the digest.")
    def override(
        ctx: typer.Context,
        session_id: str = typer.Argument(...),
        minutes: Optional[float] = typer.Option(None, "--minutes", help="Defer by this many minutes."),
        until: Optional[str] = typer.Option(None, "--until", help="Defer to this instant (ISO 8601)."),
        target: Optional[str] = typer.Option(
            None, "--target", help="Batch id or 'digest'; defaults to the next pending batch."
        ),
        actor: str = typer.Option("admin.system", "--actor"),
        reason: Optional[str] = typer.Option(None, "--reason"),
    ) -> None:
        if (minutes is None) == (until is None):
            raise typer.BadParameter("Provide exactly one of --minutes or --until.")
        try:
            request = OverrideRequest(
                defer_by_minutes=minutes,
                defer_until=until,
                target=target,
                actor=actor,
                reason=reason,
            )
        except ValidationError as exc:
            raise typer.BadParameter(str(exc)) from exc
        store = open_services(ctx).schedules
        emit_json(run_action(lambda: store.apply_override(session_id, request)))

    @app.command("batch-status", help="Move a batch to a new status.")
    def batch_status(
        ctx: typer.Context,
        session_id: str = typer.Argument(...),
        batch_id: str = typer.Argument(...),
        status: str = typer.Argument(..., help="scheduled|ready|published|failed"),
        delta_count: Optional[int] = typer.Option(None, "--delta-count", min=0),
        notes: Optional[str] = typer.Option(None, "--notes"),
    ) -> None:
        metadata = {"delta_count": delta_count, "notes": notes}
        store = open_services(ctx).schedules
        emit_json(
            run_action(lambda: store.update_batch_status(session_id, batch_id, status, metadata))
        )


__all__ = ["register_cadence_commands"]
