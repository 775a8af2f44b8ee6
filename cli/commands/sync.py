"""
Sync command: push local events and pull remote ones
"""

import asyncio
from typing import Optional

import typer

from lapsync.config import Settings
from lapsync.core.errors import EventStoreError
from lapsync.metrics import start_metrics_server
from lapsync.sync import HttpSyncClient, SyncEngine

from cli.common import console, fail, json_option, open_store, print_json, require_session, store_option


def sync_command(
    session_id: str = typer.Argument(..., help="Session id"),
    once: bool = typer.Option(False, "--once", help="One push and one pull, then exit"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Remote API base URL"),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Tick interval in seconds"),
    store_path: str = store_option(),
    json_output: bool = json_option(),
):
    """
    Replicate a paired session with the remote.

    Without --once, push and pull loops run until interrupted.

    Examples:
        lapsync sync SESSION --once
        lapsync sync SESSION --interval 2
    """
    settings = Settings.from_env()
    try:
        store = open_store(store_path)
        session = require_session(store, session_id)
    except EventStoreError as e:
        fail(str(e), json_output)

    if not session.is_paired:
        fail("session is not paired; run `lapsync session import-token` first", json_output)

    client = HttpSyncClient(base_url or settings.base_url, settings.http_timeout_seconds)
    engine = SyncEngine(
        store,
        client,
        session_id,
        interval_seconds=interval or settings.sync_interval_seconds,
    )

    if once:
        push, pull = asyncio.run(engine.sync_once())
        if json_output:
            print_json(
                {
                    "push": {
                        "synced": push.synced,
                        "failed": push.failed,
                        "failed_ids": list(push.failed_ids),
                        "error": push.error,
                    },
                    "pull": {
                        "received": pull.received,
                        "applied": pull.applied,
                        "reset": pull.reset,
                        "watermark_ms": pull.watermark_ms,
                        "error": pull.error,
                    },
                }
            )
        else:
            console.print(f"[bold]Push:[/bold] {push.synced} synced, {push.failed} failed")
            if push.error:
                console.print(f"  [red]{push.error}[/red]")
            console.print(f"[bold]Pull:[/bold] {pull.applied} applied" + (" (session reset)" if pull.reset else ""))
            if pull.error:
                console.print(f"  [red]{pull.error}[/red]")
        raise typer.Exit(2 if push.error or pull.error else 0)

    start_metrics_server(settings.metrics_enabled, settings.metrics_port)
    if not json_output:
        console.print(f"[bold]Syncing {session_id}[/bold] every {engine.interval_seconds}s (Ctrl+C to stop)")
    try:
        asyncio.run(engine.run())
    except KeyboardInterrupt:
        engine.stop()
        if not json_output:
            console.print("\n[yellow]Sync stopped[/yellow]")
    raise typer.Exit(0)
