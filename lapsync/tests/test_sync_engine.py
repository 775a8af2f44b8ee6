"""
Tests for the push/pull sync engine.

The transport is faked; the engine runs under asyncio.run.
"""

import asyncio
import threading

from lapsync.core.clock import ManualClock
from lapsync.core.errors import EventStoreError, SyncTransportError
from lapsync.core.events import CLEAR_ALL, LAP_END, SCAN
from lapsync.log import (
    GLOBAL_RUNNER_ID,
    ORIGIN_LOCAL,
    ORIGIN_REMOTE,
    EventRecord,
    MemoryEventStore,
    SessionRecord,
)
from lapsync.sync import PullResult, PushResult, SyncEngine, TransportResponse
from lapsync.sync.engine import MISSING_TOKEN_ERROR, PARTIAL_FAILURE_ERROR


class FakeClient:
    def __init__(self):
        self.ingest_calls = []
        self.fetch_calls = []
        self.ingest_response = TransportResponse(200, {})
        self.pull_response = TransportResponse(200, {"events": []})
        self.ingest_error = None
        self.fetch_error = None
        self.release = None

    def ingest(self, pairing_token, payload):
        self.ingest_calls.append((pairing_token, payload))
        if self.release is not None:
            self.release.wait(timeout=5)
        if self.ingest_error:
            raise self.ingest_error
        return self.ingest_response

    def fetch_events(self, pairing_token, since_ms=None):
        self.fetch_calls.append((pairing_token, since_ms))
        if self.fetch_error:
            raise self.fetch_error
        return self.pull_response


def paired_session(**overrides):
    fields = dict(
        id="cfg1",
        template_key="A",
        laps_required=3,
        created_at_ms=0,
        remote_session_id="remote-1",
        run_config_id="cfg1",
        pairing_token="tok",
    )
    fields.update(overrides)
    return SessionRecord(**fields)


def local(event_id, t, runner="7", type=SCAN):
    return EventRecord(
        id=event_id, session_id="cfg1", runner_id=runner, station_id=LAP_END, type=type, captured_at_ms=t
    )


def setup(session=None):
    store = MemoryEventStore()
    store.put_session(session or paired_session())
    client = FakeClient()
    clock = ManualClock(current=1000)
    engine = SyncEngine(store, client, "cfg1", interval_seconds=0.01, clock=clock)
    return engine, store, client


def wire(event_id, t, runner="7", type="SCAN", station="LAP_END"):
    return {"id": event_id, "runnerId": runner, "stationId": station, "type": type, "capturedAtMs": t}


# Push


def test_push_without_token_makes_no_request():
    engine, store, client = setup(paired_session(pairing_token=None))
    store.add_event(local("e1", 1))

    result = asyncio.run(engine.push_once())

    assert result.error == MISSING_TOKEN_ERROR
    assert client.ingest_calls == []
    assert len(store.list_unsynced_events("cfg1")) == 1


def test_push_without_remote_session_makes_no_request():
    engine, store, client = setup(paired_session(remote_session_id=None))
    store.add_event(local("e1", 1))

    assert asyncio.run(engine.push_once()).error == MISSING_TOKEN_ERROR
    assert client.ingest_calls == []


def test_push_nothing_pending_is_noop():
    engine, _, client = setup()

    assert asyncio.run(engine.push_once()) == PushResult()
    assert client.ingest_calls == []


def test_push_request_shape():
    engine, store, client = setup()
    store.add_event(local("e1", 1))

    asyncio.run(engine.push_once())

    [(token, payload)] = client.ingest_calls
    assert token == "tok"
    assert payload["sessionId"] == "remote-1"
    assert payload["runConfigId"] == "cfg1"
    assert payload["events"] == [
        {
            "id": "e1",
            "runnerId": "7",
            "stationId": "LAP_END",
            "type": "SCAN",
            "capturedAtMs": 1,
            "refEventId": None,
        }
    ]


def test_push_without_per_id_status_marks_whole_batch():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    store.add_event(local("e2", 2))

    result = asyncio.run(engine.push_once())

    assert result.synced == 2
    assert result.error is None
    assert store.list_unsynced_events("cfg1") == []
    assert store.get_event("e1").synced_at_ms == 1000


def test_push_marks_only_accepted_ids():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    store.add_event(local("e2", 2))
    client.ingest_response = TransportResponse(200, {"acceptedIds": ["e1"], "failedIds": ["e2"]})

    result = asyncio.run(engine.push_once())

    assert result.synced == 1
    assert result.failed == 1
    assert result.failed_ids == ("e2",)
    assert result.error == PARTIAL_FAILURE_ERROR
    assert [e.id for e in store.list_unsynced_events("cfg1")] == ["e2"]


def test_push_failed_ids_stay_pending_with_structured_error():
    """A non-string error field must not hide the per-id status."""
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    store.add_event(local("e2", 2))
    client.ingest_response = TransportResponse(
        200, {"acceptedIds": ["e1"], "failedIds": ["e2"], "error": {"e2": "duplicate runner"}}
    )

    result = asyncio.run(engine.push_once())

    assert result.synced == 1
    assert result.failed_ids == ("e2",)
    assert [e.id for e in store.list_unsynced_events("cfg1")] == ["e2"]


def test_push_skips_non_string_ids():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    store.add_event(local("e2", 2))
    client.ingest_response = TransportResponse(200, {"acceptedIds": ["e1", 42], "failedIds": ["e2", None]})

    result = asyncio.run(engine.push_once())

    assert result.accepted_ids == ("e1",)
    assert result.failed_ids == ("e2",)
    assert [e.id for e in store.list_unsynced_events("cfg1")] == ["e2"]


def test_push_only_failed_ids_marks_nothing():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.ingest_response = TransportResponse(200, {"failedIds": ["e1"]})

    result = asyncio.run(engine.push_once())

    assert result.synced == 0
    assert [e.id for e in store.list_unsynced_events("cfg1")] == ["e1"]


def test_push_ignores_accepted_ids_outside_batch():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    store.add_event(local("old", 0))
    store.mark_events_synced(["old"], 5)
    client.ingest_response = TransportResponse(200, {"acceptedIds": ["e1", "old"]})

    asyncio.run(engine.push_once())

    assert store.get_event("old").synced_at_ms == 5
    assert store.get_event("e1").synced_at_ms == 1000


def test_push_malformed_response_marks_whole_batch():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.ingest_response = TransportResponse(200, None)

    assert asyncio.run(engine.push_once()).synced == 1
    assert store.list_unsynced_events("cfg1") == []


def test_push_non_list_ids_count_as_absent():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.ingest_response = TransportResponse(200, {"acceptedIds": "e1"})

    assert asyncio.run(engine.push_once()).synced == 1


def test_push_http_error_marks_nothing():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.ingest_response = TransportResponse(401, {"error": "Invalid token."})

    result = asyncio.run(engine.push_once())

    assert result.error == "Invalid token."
    assert result.failed == 1
    assert len(store.list_unsynced_events("cfg1")) == 1


def test_push_http_error_without_body():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.ingest_response = TransportResponse(503, None)

    assert asyncio.run(engine.push_once()).error == "Sync failed (503)."


def test_push_transport_error_leaves_events_pending():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.ingest_error = SyncTransportError("connection refused")

    result = asyncio.run(engine.push_once())

    assert "connection refused" in result.error
    assert len(store.list_unsynced_events("cfg1")) == 1

    client.ingest_error = None
    assert asyncio.run(engine.push_once()).synced == 1


def test_push_in_flight_guard():
    """A push started while one is running is skipped, not queued."""
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.release = threading.Event()

    async def scenario():
        first = asyncio.create_task(engine.push_once())
        await asyncio.sleep(0)
        second = await engine.push_once()
        client.release.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert second.skipped
    assert first.synced == 1
    assert len(client.ingest_calls) == 1


# Pull


def test_pull_applies_remote_events_as_synced():
    engine, store, client = setup()
    client.pull_response = TransportResponse(200, {"events": [wire("r1", 500), wire("r2", 700, runner="8")]})

    result = asyncio.run(engine.pull_once())

    assert result.received == 2
    assert result.applied == 2
    assert result.watermark_ms == 700
    r1 = store.get_event("r1")
    assert r1.origin == ORIGIN_REMOTE
    assert r1.synced_at_ms == 1000
    assert r1.session_id == "cfg1"
    assert store.list_unsynced_events("cfg1") == []


def test_pull_sends_watermark():
    engine, _, client = setup()
    client.pull_response = TransportResponse(200, {"events": [wire("r1", 500)]})

    asyncio.run(engine.pull_once())
    asyncio.run(engine.pull_once())

    assert client.fetch_calls == [("tok", None), ("tok", 500)]


def test_pull_watermark_never_moves_back():
    engine, _, client = setup()
    client.pull_response = TransportResponse(200, {"events": [wire("r1", 500)]})
    asyncio.run(engine.pull_once())
    client.pull_response = TransportResponse(200, {"events": [wire("r0", 100)]})

    assert asyncio.run(engine.pull_once()).watermark_ms == 500


def test_pull_keeps_local_origin_for_known_events():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.pull_response = TransportResponse(200, {"events": [wire("e1", 1)]})

    asyncio.run(engine.pull_once())

    e1 = store.get_event("e1")
    assert e1.origin == ORIGIN_LOCAL
    assert e1.synced


def test_pull_defaults_missing_fields():
    engine, store, client = setup()
    client.pull_response = TransportResponse(200, {"events": [{"id": "bare"}, wire("legacy", 5, type="PASS")]})

    asyncio.run(engine.pull_once())

    bare = store.get_event("bare")
    assert bare.runner_id == ""
    assert bare.station_id == ""
    assert bare.type == SCAN
    assert bare.captured_at_ms == 1000
    assert store.get_event("legacy").type == SCAN


def test_pull_newer_clear_all_wipes_local_log():
    engine, store, client = setup()
    store.add_event(local("stale", 100))
    client.pull_response = TransportResponse(
        200,
        {
            "events": [
                wire("before", 150),
                wire("reset", 200, runner=GLOBAL_RUNNER_ID, type=CLEAR_ALL),
                wire("after", 300),
            ]
        },
    )

    result = asyncio.run(engine.pull_once())

    assert result.reset
    assert result.received == 3
    assert result.applied == 2
    assert [e.id for e in store.list_events_for_session("cfg1")] == ["reset", "after"]
    assert engine.reset_watermark_ms == 200


def test_pull_known_clear_all_does_not_wipe_again():
    engine, store, client = setup()
    store.add_event(local("reset", 200, runner=GLOBAL_RUNNER_ID, type=CLEAR_ALL))
    store.add_event(local("e1", 250))
    client.pull_response = TransportResponse(
        200, {"events": [wire("reset", 200, runner=GLOBAL_RUNNER_ID, type=CLEAR_ALL), wire("r1", 260)]}
    )

    result = asyncio.run(engine.pull_once())

    assert not result.reset
    assert {e.id for e in store.list_events_for_session("cfg1")} == {"reset", "e1", "r1"}


def test_pull_http_error():
    engine, store, client = setup()
    client.pull_response = TransportResponse(403, {"error": "Token revoked."})

    result = asyncio.run(engine.pull_once())

    assert result.error == "Token revoked."
    assert result.watermark_ms == 0


def test_pull_transport_error():
    engine, _, client = setup()
    client.fetch_error = SyncTransportError("timed out")

    result = asyncio.run(engine.pull_once())

    assert "timed out" in result.error
    assert result.applied == 0


def test_pull_malformed_response_is_empty():
    engine, store, client = setup()
    for body in (None, [], {"events": "nope"}, {"events": [{"runnerId": "7"}]}):
        client.pull_response = TransportResponse(200, body)
        result = asyncio.run(engine.pull_once())
        assert result == PullResult()
    assert store.list_events_for_session("cfg1") == []


# Loops


def test_sync_once_pushes_then_pulls():
    engine, store, client = setup()
    store.add_event(local("e1", 1))
    client.pull_response = TransportResponse(200, {"events": [wire("r1", 9)]})

    push, pull = asyncio.run(engine.sync_once())

    assert push.synced == 1
    assert pull.applied == 1
    assert len(client.ingest_calls) == 1
    assert len(client.fetch_calls) == 1


def test_run_until_stopped():
    engine, store, client = setup()
    store.add_event(local("e1", 1))

    async def scenario():
        task = asyncio.create_task(engine.run())
        await asyncio.sleep(0.05)
        engine.stop()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(scenario())

    assert len(client.ingest_calls) == 1
    assert len(client.fetch_calls) >= 2
    assert store.list_unsynced_events("cfg1") == []


def test_stop_before_run_makes_no_calls():
    engine, _, client = setup()
    engine.stop()

    asyncio.run(asyncio.wait_for(engine.run(), timeout=2))

    assert client.fetch_calls == []


class FlakyStore(MemoryEventStore):
    def list_unsynced_events(self, session_id):
        raise EventStoreError("disk gone")


def test_loop_survives_store_errors():
    store = FlakyStore()
    store.put_session(paired_session())
    client = FakeClient()
    engine = SyncEngine(store, client, "cfg1", interval_seconds=0.01, clock=ManualClock())

    async def scenario():
        task = asyncio.create_task(engine.run())
        await asyncio.sleep(0.05)
        engine.stop()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(scenario())

    assert client.ingest_calls == []
    assert len(client.fetch_calls) >= 2
