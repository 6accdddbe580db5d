"""Moderation queue and closure workflow commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from core.errors import NotFoundError
from schemas.moderation import ModerationQueueRecord

from .shared import emit_json, load_json_file, open_services, run_action


def register_queue_commands(app: typer.Typer, *, console: Optional[Console] = None) -> None:
    """Attach moderation queue commands to the provided Typer application."""

    cli_console = console or Console()

    @app.command(help="List stored moderation queues, newest first.")
    def queues(
        ctx: typer.Context,
        json_out: bool = typer.Option(False, "--json", help="Output JSON."),
    ) -> None:
        records = open_services(ctx).queues.list_queues()
        if json_out:
            emit_json(records)
            return
        if not records:
            cli_console.print("[yellow]No moderation queues stored.[/yellow]")
            return
        table = Table(title="Moderation queues")
        table.add_column("Session")
        table.add_column("Pending", justify="right")
        table.add_column("Items", justify="right")
        table.add_column("Window")
        table.add_column("Next batch")
        table.add_column("Updated")
        for record in records:
            state = record.state
            window = state.window.status if state.window and state.window.status else "-"
            next_batch = (
                state.cadence.next_batch_at.isoformat()
                if state.cadence and state.cadence.next_batch_at
                else "-"
            )
            table.add_row(
                record.session_id,
                str(record.pending_count),
                str(len(state.items)),
                window,
                next_batch,
                record.updated_at.isoformat() if record.updated_at else "-",
            )
        cli_console.print(table)

    @app.command("queue-show", help="Show the stored moderation queue for a session.")
    def queue_show(ctx: typer.Context, session_id: str = typer.Argument(...)) -> None:
        store = open_services(ctx).queues

        def load() -> ModerationQueueRecord:
            record = store.get_queue(session_id)
            if record is None:
                raise NotFoundError("moderation_queue_missing")
            return record

        emit_json(run_action(load))

    @app.command("queue-delete", help="Delete the stored moderation queue for a session.")
    def queue_delete(ctx: typer.Context, session_id: str = typer.Argument(...)) -> None:
        run_action(lambda: open_services(ctx).queues.delete_queue(session_id))
        emit_json({"session_id": session_id, "deleted": True})

    @app.command("queue-project", help="Project deltas from a JSON file into a session queue.")
    def queue_project(
        ctx: typer.Context,
        session_id: str = typer.Argument(...),
        deltas_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    ) -> None:
        deltas = load_json_file(deltas_file)
        services = open_services(ctx)
        emit_json(run_action(lambda: services.publishing.project_queue(session_id, deltas)))

    @app.command(help="Run the closure workflow for a session.")
    def close(
        ctx: typer.Context,
        session_id: str = typer.Argument(...),
        closed_at: str = typer.Argument(..., help="Session closure instant (ISO 8601)."),
        deltas_file: Optional[Path] = typer.Option(
            None, "--deltas", exists=True, dir_okay=False, readable=True
        ),
        audit_ref: Optional[str] = typer.Option(None, "--audit-ref"),
    ) -> None:
        deltas = load_json_file(deltas_file) if deltas_file else []
        services = open_services(ctx)
        job = run_action(
            lambda: services.closure.run(
                {"session_id": session_id, "closed_at": closed_at, "audit_ref": audit_ref},
                deltas,
            )
        )
        emit_json(job)
        if job.status == "failed":
            raise typer.Exit(code=1)


__all__ = ["register_queue_commands"]
