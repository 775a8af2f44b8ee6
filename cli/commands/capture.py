"""
Capture commands: scan, undo, clear, reset, start
"""

import typer

from lapsync.capture import StationCapture
from lapsync.core.errors import EventStoreError, InvalidRunnerIdError
from lapsync.core.events import LAP_END, START, STATIONS
from lapsync.log import EventRecord

from cli.common import console, fail, json_option, open_store, print_json, store_option

app = typer.Typer()


def station_option():
    return typer.Option(LAP_END, "--station", help=f"Station ({', '.join(STATIONS)})")


def _capture(store_path: str, session_id: str, station: str, json_output: bool) -> StationCapture:
    if station not in STATIONS:
        fail(f"unknown station: {station}", json_output)
    return StationCapture(open_store(store_path), session_id, station)


def _event_dict(record: EventRecord) -> dict:
    data = record.to_dict()
    data.pop("session_id", None)
    return data


@app.command()
def scan(
    session_id: str = typer.Argument(..., help="Session id"),
    runner: str = typer.Argument(..., help="Runner id as typed or scanned"),
    station: str = station_option(),
    force: bool = typer.Option(False, "--force", "-f", help="Record even inside the debounce gap"),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Record a runner passing a station.

    Exits 1 when the scan is refused (debounced or runner already done).

    Examples:
        lapsync capture scan SESSION 007
        lapsync capture scan SESSION a04 --station A --force
    """
    try:
        outcome = _capture(store_path, session_id, station, json_output).record_scan(runner, force=force)
    except (InvalidRunnerIdError, EventStoreError) as e:
        fail(str(e), json_output)

    if json_output:
        print_json(
            {
                "status": outcome.status,
                "runner_id": outcome.runner_id,
                "event": _event_dict(outcome.event) if outcome.event else None,
            }
        )
    elif outcome.recorded:
        console.print(f"[green]Recorded:[/green] {outcome.runner_id}")
    else:
        console.print(f"[yellow]Not recorded ({outcome.status}):[/yellow] {outcome.runner_id}")
    raise typer.Exit(0 if outcome.recorded else 1)


@app.command()
def undo(
    session_id: str = typer.Argument(..., help="Session id"),
    runner: str = typer.Argument(..., help="Runner id"),
    station: str = station_option(),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """Retract the runner's newest local scan at this station."""
    try:
        record = _capture(store_path, session_id, station, json_output).undo_last(runner)
    except (InvalidRunnerIdError, EventStoreError) as e:
        fail(str(e), json_output)

    if record is None:
        fail(f"no local scans to undo: {runner}", json_output, code=1)

    if json_output:
        print_json({"event": _event_dict(record)})
    else:
        console.print(f"[green]Undo:[/green] {record.runner_id} (retracts {record.ref_event_id})")
    raise typer.Exit(0)


@app.command()
def clear(
    session_id: str = typer.Argument(..., help="Session id"),
    runner: str = typer.Argument(..., help="Runner id"),
    station: str = station_option(),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """Reset one runner's derived state."""
    try:
        record = _capture(store_path, session_id, station, json_output).clear_runner(runner)
    except (InvalidRunnerIdError, EventStoreError) as e:
        fail(str(e), json_output)

    if json_output:
        print_json({"event": _event_dict(record)})
    else:
        console.print(f"[green]Cleared:[/green] {record.runner_id}")
    raise typer.Exit(0)


@app.command()
def reset(
    session_id: str = typer.Argument(..., help="Session id"),
    station: str = station_option(),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Reset the whole session: wipe the local log and record a CLEAR_ALL.

    Other devices wipe their copy when they pull the CLEAR_ALL.
    """
    if not yes and not json_output:
        typer.confirm("Delete every local event of this session?", abort=True)

    try:
        record = _capture(store_path, session_id, station, json_output).reset_session()
    except EventStoreError as e:
        fail(str(e), json_output)

    if json_output:
        print_json({"event": _event_dict(record)})
    else:
        console.print("[green]Session reset recorded.[/green]")
    raise typer.Exit(0)


@app.command()
def start(
    session_id: str = typer.Argument(..., help="Session id"),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """Record the global start for every runner of the session."""
    try:
        record = _capture(store_path, session_id, START, json_output).global_start()
    except EventStoreError as e:
        fail(str(e), json_output)

    if json_output:
        print_json({"event": _event_dict(record)})
    else:
        console.print(f"[green]Global start:[/green] {record.captured_at_ms}")
    raise typer.Exit(0)
