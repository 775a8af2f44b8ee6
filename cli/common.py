"""
Helpers shared by the command modules.
"""

import json
from typing import Any, NoReturn

import typer
from rich.console import Console

from lapsync.config import DEFAULT_STORE_PATH
from lapsync.core.errors import SessionNotFoundError
from lapsync.log import FileEventStore, SessionRecord

console = Console()


def store_option() -> Any:
    return typer.Option(
        DEFAULT_STORE_PATH,
        "--store",
        "-s",
        envvar="LAPSYNC_STORE_PATH",
        help="Path to the local store journal",
    )


def json_option() -> Any:
    return typer.Option(False, "--json", help="Output as JSON")


def open_store(path: str) -> FileEventStore:
    return FileEventStore(path)


def require_session(store: FileEventStore, session_id: str) -> SessionRecord:
    session = store.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(f"session not found: {session_id}")
    return session


def public_session(session: SessionRecord) -> dict:
    """Session as shown to users: the pairing token is never printed."""
    data = session.to_dict()
    data.pop("pairing_token", None)
    data["paired"] = session.is_paired
    return data


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def fail(message: str, json_output: bool, code: int = 2) -> NoReturn:
    if json_output:
        print(json.dumps({"error": message}))
    else:
        console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code)
