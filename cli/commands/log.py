"""
Event log commands: tail
"""

from typing import Optional

import typer
from rich.table import Table

from lapsync.core.errors import EventStoreError
from lapsync.replay import retracted_ids

from cli.common import console, fail, json_option, open_store, print_json, require_session, store_option

app = typer.Typer()


@app.command()
def tail(
    session_id: str = typer.Argument(..., help="Session id"),
    lines: int = typer.Option(20, "--lines", "-n", min=1, help="Number of events to show"),
    runner: Optional[str] = typer.Option(None, "--runner", "-r", help="Only this runner"),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Show a session's newest events, newest first.

    Examples:
        lapsync log tail SESSION
        lapsync log tail SESSION --lines 50 --runner 7
        lapsync log tail SESSION --json
    """
    try:
        store = open_store(store_path)
        require_session(store, session_id)
        records = store.list_events_for_session(session_id)
    except EventStoreError as e:
        fail(str(e), json_output)

    retracted = retracted_ids(records)
    if runner is not None:
        records = [r for r in records if r.runner_id == runner]
    recent = list(reversed(records))[:lines]

    if json_output:
        events = []
        for r in recent:
            data = r.to_dict()
            data["retracted"] = r.id in retracted
            events.append(data)
        print_json({"events": events, "count": len(events)})
        raise typer.Exit(0)

    if not recent:
        console.print("[yellow]Event log is empty[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Events: {session_id}")
    table.add_column("Captured", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Runner", style="yellow")
    table.add_column("Station")
    table.add_column("Synced")
    table.add_column("ID (prefix)", style="dim")
    for r in recent:
        kind = f"[strike]{r.type}[/strike]" if r.id in retracted else r.type
        table.add_row(
            str(r.captured_at_ms),
            kind,
            r.runner_id or "-",
            r.station_id or "-",
            "yes" if r.synced else "no",
            r.id[:8],
        )
    console.print(table)
    console.print(f"\n[bold]Shown:[/bold] {len(recent)} of {len(records)}")
    raise typer.Exit(0)
