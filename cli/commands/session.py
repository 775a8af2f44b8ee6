"""
Session commands: create, import-token, list, show
"""

import json
from typing import Optional

import typer
from rich.table import Table

from lapsync.core.clock import SystemClock
from lapsync.core.errors import EventStoreError
from lapsync.core.ids import new_id
from lapsync.core.templates import Enforcement, TemplateKey
from lapsync.log import RUNNER_FORMAT_CLASS_INDEX, RUNNER_FORMAT_NUMERIC, SessionRecord
from lapsync.query import build_summaries, global_start_ms, session_config

from cli.common import (
    console,
    fail,
    json_option,
    open_store,
    print_json,
    public_session,
    require_session,
    store_option,
)

app = typer.Typer()

RUNNER_FORMATS = (RUNNER_FORMAT_NUMERIC, RUNNER_FORMAT_CLASS_INDEX)


@app.command()
def create(
    template: TemplateKey = typer.Option(TemplateKey.A, "--template", "-t", help="Station topology"),
    laps: int = typer.Option(..., "--laps", "-l", min=1, help="Laps required"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    runner_format: str = typer.Option(
        RUNNER_FORMAT_NUMERIC, "--runner-format", help="numeric or classIndex"
    ),
    enforcement: Optional[Enforcement] = typer.Option(
        None, "--enforcement", "-e", help="Checkpoint enforcement override"
    ),
    scan_gap_ms: Optional[int] = typer.Option(
        None, "--scan-gap-ms", min=1, help="Debounce gap for every station except FINISH"
    ),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Create an unpaired local session.

    Examples:
        lapsync session create --template C --laps 4
        lapsync session create -t E -l 3 --enforcement STRICT --json
    """
    if runner_format not in RUNNER_FORMATS:
        fail(f"runner format must be one of {', '.join(RUNNER_FORMATS)}", json_output)

    session = SessionRecord(
        id=new_id(),
        template_key=template.value,
        laps_required=laps,
        created_at_ms=SystemClock().now_ms(),
        name=name,
        runner_id_format=runner_format,
        enforcement=enforcement.value if enforcement else None,
        scan_gap_ms=scan_gap_ms,
    )
    try:
        open_store(store_path).put_session(session)
    except EventStoreError as e:
        fail(str(e), json_output)

    if json_output:
        print_json(public_session(session))
    else:
        console.print(f"[green]Session created:[/green] {session.id}")
    raise typer.Exit(0)


@app.command("import-token")
def import_token(
    token: str = typer.Argument(..., help="Pairing token"),
    payload_path: str = typer.Option(
        ..., "--payload", "-p", help="JSON file with the resolved token payload"
    ),
    runner_format: Optional[str] = typer.Option(
        None, "--runner-format", help="numeric or classIndex"
    ),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Pair this device with a remote run config.

    The payload file holds the token-resolution response:
    {"runConfigId", "sessionId", "templateKey", "lapsRequired", "enforcement"?, "scanGapMs"?, "name"?}

    Examples:
        lapsync session import-token TOKEN --payload resolved.json
    """
    if runner_format is not None and runner_format not in RUNNER_FORMATS:
        fail(f"runner format must be one of {', '.join(RUNNER_FORMATS)}", json_output)

    try:
        with open(payload_path, "r") as f:
            payload = json.load(f)
    except FileNotFoundError:
        fail(f"payload file not found: {payload_path}", json_output)
    except json.JSONDecodeError as e:
        fail(f"payload is not valid JSON: {e}", json_output)

    try:
        session = SessionRecord.from_token_payload(
            payload,
            pairing_token=token,
            created_at_ms=SystemClock().now_ms(),
            runner_id_format=runner_format,
        )
    except (KeyError, TypeError, ValueError) as e:
        fail(f"payload is missing or has an invalid field: {e}", json_output)

    try:
        open_store(store_path).put_session(session)
    except EventStoreError as e:
        fail(str(e), json_output)

    if json_output:
        print_json(public_session(session))
    else:
        console.print(f"[green]Paired session:[/green] {session.id} (remote {session.remote_session_id})")
    raise typer.Exit(0)


@app.command("list")
def list_sessions(
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """List local sessions, newest first."""
    try:
        sessions = open_store(store_path).list_sessions()
    except EventStoreError as e:
        fail(str(e), json_output)

    if json_output:
        print_json({"sessions": [public_session(s) for s in sessions], "count": len(sessions)})
        raise typer.Exit(0)

    if not sessions:
        console.print("[yellow]No sessions[/yellow]")
        raise typer.Exit(0)

    table = Table(title="Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Template", style="green")
    table.add_column("Laps")
    table.add_column("Paired")
    for s in sessions:
        table.add_row(s.id, s.name or "-", s.template_key, str(s.laps_required), "yes" if s.is_paired else "no")
    console.print(table)
    raise typer.Exit(0)


@app.command()
def show(
    session_id: str = typer.Argument(..., help="Session id"),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Show a session and its per-runner progress.

    Examples:
        lapsync session show 3f2a...
        lapsync session show 3f2a... --json
    """
    try:
        store = open_store(store_path)
        session = require_session(store, session_id)
        records = store.list_events_for_session(session_id)
    except EventStoreError as e:
        fail(str(e), json_output)

    config = session_config(session)
    summaries = build_summaries(records, config)
    start_ms = global_start_ms(records)

    if json_output:
        print_json(
            {
                "session": public_session(session),
                "global_start_ms": start_ms,
                "runners": [s.to_dict() for s in summaries],
            }
        )
        raise typer.Exit(0)

    console.print(f"[bold]Session:[/bold] {session.name or session.id}")
    console.print(f"  Template: [green]{session.template_key}[/green]  Laps: {session.laps_required}")
    console.print(f"  Flags: {', '.join(f.value for f in config.flags) or '-'}")
    if start_ms is not None:
        console.print(f"  Global start: {start_ms}")

    table = Table(title="Runners")
    table.add_column("Runner", style="cyan")
    table.add_column("Laps", style="green")
    table.add_column("Finished")
    table.add_column("Flags", style="yellow")
    table.add_column("Last seen", style="dim")
    for s in summaries:
        table.add_row(
            s.runner_id,
            f"{s.lap_count}/{session.laps_required}",
            "yes" if s.finished else "no",
            ", ".join(f.value for f in s.flags) or "-",
            str(s.last_seen_at_ms) if s.last_seen_at_ms is not None else "-",
        )
    console.print(table)
    console.print(f"\n[bold]Total runners:[/bold] {len(summaries)}")
    raise typer.Exit(0)
