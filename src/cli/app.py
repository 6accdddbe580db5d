"""Typer CLI entrypoint for the continuity subsystem."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from continuity import __version__
from core.config import get_settings

from .commands import register_cadence_commands, register_queue_commands


def create_cli_app(console: Optional[Console] = None) -> typer.Typer:
    """Build and configure the Typer CLI application."""

    cli_console = console or Console()
    app = typer.Typer(
        help="Publishing cadence and moderation queue tools.",
        context_settings={"help_option_names": ["-h", "--help"]},
        no_args_is_help=True,
    )

    def version_callback(value: bool) -> None:
        if not value:
            return

        cli_console.print(f"continuity {__version__}")
        raise typer.Exit()

    @app.callback()
    def main(
        ctx: typer.Context,
        version: bool = typer.Option(
            None,
            "--version",
            "-v",
            help="Show the installed version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
        db_path: Optional[Path] = typer.Option(
            None, "--db", help="State database path (defaults to CONTINUITY_STATE_DB)."
        ),
        log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level."),
    ) -> None:
        level = (log_level or get_settings().log_level).upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        ctx.obj = {"db_path": db_path}

    register_cadence_commands(app)
    register_queue_commands(app, console=cli_console)
    return app


app = create_cli_app()


def main() -> None:
    app()


__all__ = ["app", "create_cli_app", "main"]
