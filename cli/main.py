#!/usr/bin/env python3
"""
lapsync CLI - offline-first lap counting

Main entrypoint for the lapsync command-line tool.
"""

import typer
from rich.console import Console
from rich.table import Table

from cli.commands import capture, log, replay, session, sync
from lapsync.logging_config import setup_logging

# Initialize Typer app
app = typer.Typer(
    name="lapsync",
    help="Offline-first lap counting with event-sourced runner state",
    add_completion=False,
)

# Console for rich output
console = Console()

# Add command groups
app.add_typer(session.app, name="session", help="Local sessions and pairing")
app.add_typer(capture.app, name="capture", help="Station capture")
app.add_typer(log.app, name="log", help="Event log operations")

# Add standalone commands
app.command("replay")(replay.replay_command)
app.command("sync")(sync.sync_command)


@app.command()
def version():
    """Show version information."""
    from cli import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]lapsync[/bold]", f"v{__version__}")
    table.add_row("Templates", "A, B, C, D, E")
    table.add_row("Store", "JSONL journal")

    console.print(table)


def main():
    """Main entrypoint."""
    setup_logging()
    app()


if __name__ == "__main__":
    main()
