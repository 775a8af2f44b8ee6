"""
Persisted record shapes for the local store.

SessionRecord holds what a device needs to capture and sync one run;
EventRecord is a RunEvent plus store-local bookkeeping (runner, sync time,
origin).
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from ..core.events import RunEvent, normalize_event_type

ORIGIN_LOCAL = "local"
ORIGIN_REMOTE = "remote"

RUNNER_FORMAT_NUMERIC = "numeric"
RUNNER_FORMAT_CLASS_INDEX = "classIndex"

# Runner id used for session-wide events (CLEAR_ALL, global START_SET).
GLOBAL_RUNNER_ID = "GLOBAL"


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass(frozen=True)
class SessionRecord:
    id: str
    template_key: str
    laps_required: int
    created_at_ms: int
    name: Optional[str] = None
    remote_session_id: Optional[str] = None
    run_config_id: Optional[str] = None
    runner_id_format: str = RUNNER_FORMAT_NUMERIC
    enforcement: Optional[str] = None
    scan_gap_ms: Optional[int] = None
    global_start_ms: Optional[int] = None
    pairing_token: Optional[str] = None

    @property
    def is_paired(self) -> bool:
        return bool(self.pairing_token and self.remote_session_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SessionRecord":
        return SessionRecord(**_known_fields(SessionRecord, data))

    @staticmethod
    def from_token_payload(
        payload: Dict[str, Any],
        pairing_token: str,
        created_at_ms: int,
        runner_id_format: Optional[str] = None,
    ) -> "SessionRecord":
        """
        Build a session from a resolved pairing token.

        The payload is the token-resolution response:
        {runConfigId, sessionId, templateKey, lapsRequired, enforcement?, scanGapMs?, name?}.
        The run config id doubles as the local session id, so re-pairing the
        same token overwrites the session instead of creating a new one.
        """
        run_config_id = str(payload["runConfigId"])
        return SessionRecord(
            id=run_config_id,
            run_config_id=run_config_id,
            remote_session_id=str(payload["sessionId"]),
            name=payload.get("name"),
            template_key=str(payload["templateKey"]),
            laps_required=int(payload["lapsRequired"]),
            runner_id_format=runner_id_format or RUNNER_FORMAT_NUMERIC,
            enforcement=payload.get("enforcement"),
            scan_gap_ms=payload.get("scanGapMs"),
            created_at_ms=created_at_ms,
            pairing_token=pairing_token,
        )


@dataclass(frozen=True)
class EventRecord:
    id: str
    session_id: str
    runner_id: str
    station_id: str
    type: str
    captured_at_ms: int
    ref_event_id: Optional[str] = None
    synced_at_ms: Optional[int] = None
    origin: str = ORIGIN_LOCAL

    @property
    def synced(self) -> bool:
        return self.synced_at_ms is not None

    def to_run_event(self) -> RunEvent:
        return RunEvent(
            id=self.id,
            captured_at_ms=self.captured_at_ms,
            type=normalize_event_type(self.type),
            station_id=self.station_id or None,
            target_id=self.ref_event_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "EventRecord":
        return EventRecord(**_known_fields(EventRecord, data))
