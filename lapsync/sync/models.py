"""
Wire models for the remote ingestion and pull endpoints.

Field names on the wire are camelCase; Python code uses snake_case names and
dumps with by_alias=True.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.events import LEGACY_SCAN_TYPE, normalize_event_type
from ..log.records import ORIGIN_REMOTE, EventRecord


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WireEvent(WireModel):
    id: str
    runner_id: Optional[str] = Field(default=None, alias="runnerId")
    station_id: Optional[str] = Field(default=None, alias="stationId")
    type: Optional[str] = None
    captured_at_ms: Optional[int] = Field(default=None, alias="capturedAtMs")
    ref_event_id: Optional[str] = Field(default=None, alias="refEventId")

    @staticmethod
    def from_record(record: EventRecord) -> "WireEvent":
        return WireEvent(
            id=record.id,
            runner_id=record.runner_id,
            station_id=record.station_id,
            type=record.type,
            captured_at_ms=record.captured_at_ms,
            ref_event_id=record.ref_event_id,
        )

    def to_record(self, session_id: str, synced_at_ms: int) -> EventRecord:
        """
        Build a synced local record. Missing fields get the same defaults the
        remote applies: empty runner and station, scan type, capture time =
        the sync time.
        """
        return EventRecord(
            id=self.id,
            session_id=session_id,
            runner_id=self.runner_id or "",
            station_id=self.station_id or "",
            type=normalize_event_type(self.type or LEGACY_SCAN_TYPE),
            captured_at_ms=self.captured_at_ms if self.captured_at_ms is not None else synced_at_ms,
            ref_event_id=self.ref_event_id,
            synced_at_ms=synced_at_ms,
            origin=ORIGIN_REMOTE,
        )


class IngestRequest(WireModel):
    session_id: str = Field(alias="sessionId")
    run_config_id: Optional[str] = Field(default=None, alias="runConfigId")
    events: List[WireEvent] = Field(default_factory=list)


class IngestResponse(WireModel):
    accepted_ids: Optional[List[str]] = Field(default=None, alias="acceptedIds")
    failed_ids: Optional[List[str]] = Field(default=None, alias="failedIds")
    error: Optional[str] = None

    @field_validator("accepted_ids", "failed_ids", mode="before")
    @classmethod
    def _string_list_or_none(cls, value):
        if not isinstance(value, list):
            return None
        return [i for i in value if isinstance(i, str)]

    @field_validator("error", mode="before")
    @classmethod
    def _string_or_none(cls, value):
        return value if isinstance(value, str) else None

    @property
    def enumerates_ids(self) -> bool:
        return bool(self.accepted_ids or self.failed_ids)


class PullResponse(WireModel):
    events: List[WireEvent] = Field(default_factory=list)

    @field_validator("events", mode="before")
    @classmethod
    def _list_or_empty(cls, value):
        return value if isinstance(value, list) else []
