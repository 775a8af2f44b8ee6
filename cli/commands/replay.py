"""
Replay command: rebuild runner state from a session's event log
"""

from typing import Optional

import typer
from rich.table import Table

from lapsync.core.errors import EventStoreError
from lapsync.query import natural_key, runner_streams, session_config
from lapsync.replay import compute_state_hash, replay

from cli.common import console, fail, json_option, open_store, print_json, require_session, store_option


def replay_command(
    session_id: str = typer.Argument(..., help="Session id"),
    runner: Optional[str] = typer.Option(None, "--runner", "-r", help="Only replay this runner"),
    until_ms: Optional[int] = typer.Option(
        None, "--until", "-u", help="Only fold events captured at or before this time"
    ),
    show_state: bool = typer.Option(False, "--show-state", help="Show full derived state"),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Replay a session's log and print each runner's state hash.

    Two devices holding the same effective events print the same hashes.

    Examples:
        lapsync replay SESSION
        lapsync replay SESSION --runner 7 --show-state
        lapsync replay SESSION --until 1700000000000 --json
    """
    try:
        store = open_store(store_path)
        session = require_session(store, session_id)
        records = store.list_events_for_session(session_id)
    except EventStoreError as e:
        fail(str(e), json_output)

    config = session_config(session)
    streams = runner_streams(records)
    if runner is not None:
        streams = {k: v for k, v in streams.items() if k == runner}
        if not streams:
            fail(f"no events for runner: {runner}", json_output, code=1)

    results = {
        runner_id: replay([r.to_run_event() for r in stream], config, to_ms=until_ms)
        for runner_id, stream in sorted(streams.items(), key=lambda kv: natural_key(kv[0]))
    }
    states = {runner_id: result.state for runner_id, result in results.items()}
    session_hash = compute_state_hash(states)

    if json_output:
        print_json(
            {
                "session_id": session_id,
                "state_hash": session_hash,
                "runners": {
                    runner_id: {
                        "applied": result.applied,
                        "state_hash": compute_state_hash(result.state),
                        **({"state": result.state.to_dict()} if show_state else {}),
                    }
                    for runner_id, result in results.items()
                },
            }
        )
        raise typer.Exit(0)

    table = Table(title=f"Replay: {session.name or session_id}")
    table.add_column("Runner", style="cyan")
    table.add_column("Events", style="green")
    table.add_column("Laps")
    table.add_column("State hash (prefix)", style="dim")
    for runner_id, result in results.items():
        table.add_row(
            runner_id,
            str(result.applied),
            str(result.state.lap_count),
            compute_state_hash(result.state)[:16],
        )
    console.print(table)

    if show_state:
        for runner_id, result in results.items():
            console.print(f"\n[bold cyan]{runner_id}[/bold cyan]")
            console.print_json(data=result.state.to_dict())

    console.print(f"\n[bold]Session state hash:[/bold] {session_hash}")
    raise typer.Exit(0)
