"""
Background push/pull replication between the local store and the remote.

Push sends unsynced local events in one batch; pull fetches remote events
newer than a watermark and merges them by id. Both run as independent loops on
a fixed interval. Failures are logged and the next tick retries; delivery is
at-least-once and the remote dedupes by event id.

A remote CLEAR_ALL newer than anything seen before wipes the local session log
before the rest of the pulled batch is applied.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from ..core.clock import SystemClock
from ..core.errors import EventStoreError, SyncTransportError
from ..core.events import CLEAR_ALL
from ..log.store import EventStore
from ..logging_config import get_logger
from ..metrics import track_failure, track_pull, track_push, track_tick
from ..query import latest_clear_all_ms
from .client import HttpSyncClient, TransportResponse
from .models import IngestRequest, IngestResponse, PullResponse, WireEvent

MISSING_TOKEN_ERROR = "Missing pairing token."
PARTIAL_FAILURE_ERROR = "Some events failed to sync."


@dataclass(frozen=True)
class PushResult:
    synced: int = 0
    failed: int = 0
    accepted_ids: Tuple[str, ...] = ()
    failed_ids: Tuple[str, ...] = ()
    error: Optional[str] = None
    skipped: bool = False


@dataclass(frozen=True)
class PullResult:
    received: int = 0
    applied: int = 0
    reset: bool = False
    watermark_ms: int = 0
    error: Optional[str] = None


def _error_message(response: TransportResponse, fallback: str) -> str:
    if isinstance(response.body, dict) and isinstance(response.body.get("error"), str):
        return response.body["error"]
    return f"{fallback} ({response.status})."


class SyncEngine:
    def __init__(
        self,
        store: EventStore,
        client: HttpSyncClient,
        session_id: str,
        interval_seconds: float = 5.0,
        clock=None,
    ) -> None:
        self.store = store
        self.client = client
        self.session_id = session_id
        self.interval_seconds = interval_seconds
        self.clock = clock or SystemClock()
        self.logger = get_logger(__name__, session_id=session_id)

        self.watermark_ms = 0
        self.reset_watermark_ms = 0
        self._push_in_flight = False
        self._stopped = False
        self._stop_event: Optional[asyncio.Event] = None

    # Push

    async def push_once(self) -> PushResult:
        """
        Submit every unsynced local event in one batch.

        A call made while another push is still running returns a skipped
        result without touching the store or the network.
        """
        if self._push_in_flight:
            return PushResult(skipped=True)
        self._push_in_flight = True
        try:
            with track_tick("push"):
                return await self._push()
        finally:
            self._push_in_flight = False

    async def _push(self) -> PushResult:
        session = self.store.get_session(self.session_id)
        if session is None or not session.pairing_token or not session.remote_session_id:
            track_failure("push", "config")
            return PushResult(error=MISSING_TOKEN_ERROR)

        pending = self.store.list_unsynced_events(self.session_id)
        if not pending:
            return PushResult()

        request = IngestRequest(
            session_id=session.remote_session_id,
            run_config_id=session.run_config_id or session.id,
            events=[WireEvent.from_record(r) for r in pending],
        )
        try:
            response = await asyncio.to_thread(
                self.client.ingest, session.pairing_token, request.model_dump(by_alias=True)
            )
        except SyncTransportError as e:
            self.logger.warning(f"Push failed, {len(pending)} events stay pending: {e}")
            track_failure("push", "transport")
            return PushResult(failed=len(pending), error=str(e))

        if not response.ok:
            error = _error_message(response, "Sync failed")
            self.logger.warning(f"Push rejected: {error}")
            track_failure("push", "http")
            return PushResult(failed=len(pending), error=error)

        parsed = self._parse_ingest(response.body)
        batch_ids = [r.id for r in pending]
        synced_at_ms = self.clock.now_ms()

        if parsed is None or not parsed.enumerates_ids:
            self.store.mark_events_synced(batch_ids, synced_at_ms)
            track_push(accepted=len(batch_ids), failed=0)
            self.logger.info(f"Pushed {len(batch_ids)} events")
            return PushResult(synced=len(batch_ids), accepted_ids=tuple(batch_ids))

        accepted = tuple(parsed.accepted_ids or ())
        failed = tuple(parsed.failed_ids or ())
        if accepted:
            in_batch = set(batch_ids)
            self.store.mark_events_synced([i for i in accepted if i in in_batch], synced_at_ms)
        track_push(accepted=len(accepted), failed=len(failed))
        if failed:
            self.logger.warning(f"Push partially failed: {len(accepted)} accepted, {len(failed)} failed")
        else:
            self.logger.info(f"Pushed {len(accepted)} events")
        return PushResult(
            synced=len(accepted),
            failed=len(failed),
            accepted_ids=accepted,
            failed_ids=failed,
            error=PARTIAL_FAILURE_ERROR if failed else None,
        )

    def _parse_ingest(self, body: Any) -> Optional[IngestResponse]:
        if not isinstance(body, dict):
            return None
        try:
            return IngestResponse.model_validate(body)
        except ValidationError:
            self.logger.debug("Ingest response did not match the expected shape")
            return None

    # Pull

    async def pull_once(self) -> PullResult:
        """Fetch remote events newer than the watermark and merge them."""
        with track_tick("pull"):
            return await self._pull()

    async def _pull(self) -> PullResult:
        session = self.store.get_session(self.session_id)
        if session is None or not session.pairing_token or not session.remote_session_id:
            track_failure("pull", "config")
            return PullResult(watermark_ms=self.watermark_ms, error=MISSING_TOKEN_ERROR)

        try:
            response = await asyncio.to_thread(
                self.client.fetch_events, session.pairing_token, self.watermark_ms or None
            )
        except SyncTransportError as e:
            self.logger.warning(f"Pull failed: {e}")
            track_failure("pull", "transport")
            return PullResult(watermark_ms=self.watermark_ms, error=str(e))

        if not response.ok:
            error = _error_message(response, "Failed to fetch events")
            self.logger.warning(f"Pull rejected: {error}")
            track_failure("pull", "http")
            return PullResult(watermark_ms=self.watermark_ms, error=error)

        events = self._parse_pull(response.body)
        if not events:
            return PullResult(watermark_ms=self.watermark_ms)

        received = len(events)
        latest_clear_all = 0
        for event in events:
            captured = event.captured_at_ms or 0
            if event.type == CLEAR_ALL:
                latest_clear_all = max(latest_clear_all, captured)
            self.watermark_ms = max(self.watermark_ms, captured)

        local = self.store.list_events_for_session(self.session_id)
        self.reset_watermark_ms = max(self.reset_watermark_ms, latest_clear_all_ms(local))

        reset = False
        if latest_clear_all > self.reset_watermark_ms:
            self.reset_watermark_ms = latest_clear_all
            self.store.clear_session_events(self.session_id)
            reset = True
            self.logger.warning(f"Remote reset at {latest_clear_all}, local session log cleared")

        if latest_clear_all:
            events = [e for e in events if (e.captured_at_ms or 0) >= latest_clear_all]

        synced_at_ms = self.clock.now_ms()
        applied = self.store.upsert_remote_events(
            self.session_id, [e.to_record(self.session_id, synced_at_ms) for e in events]
        )
        track_pull(applied=applied, reset=reset)
        self.logger.info(f"Pulled {applied} events, watermark {self.watermark_ms}")
        return PullResult(
            received=received, applied=applied, reset=reset, watermark_ms=self.watermark_ms
        )

    def _parse_pull(self, body: Any) -> List[WireEvent]:
        if not isinstance(body, dict):
            return []
        try:
            return PullResponse.model_validate(body).events
        except ValidationError:
            self.logger.debug("Pull response did not match the expected shape")
            return []

    # Loops

    async def sync_once(self) -> Tuple[PushResult, PullResult]:
        push = await self.push_once()
        pull = await self.pull_once()
        return push, pull

    async def run(self) -> None:
        """Run the push and pull loops until stop() is called."""
        self._stop_event = asyncio.Event()
        if self._stopped:
            self._stop_event.set()
        self.logger.info(f"Sync started, interval {self.interval_seconds}s")
        await asyncio.gather(self._loop(self.push_once, "push"), self._loop(self.pull_once, "pull"))
        self.logger.info("Sync stopped")

    def stop(self) -> None:
        """End future ticks. A call already in flight still completes."""
        self._stopped = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def _loop(self, tick, direction: str) -> None:
        while not self._stopped:
            try:
                await tick()
            except EventStoreError as e:
                self.logger.error(f"{direction} tick failed on the local store: {e}")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
