"""
HTTP transport for the remote event API.

Both endpoints authenticate with the session's pairing token as a Bearer
token. HTTP error statuses come back as a TransportResponse so the engine can
decide what they mean; only failures to get any response at all raise.
"""

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.errors import SyncTransportError

logger = logging.getLogger(__name__)

INGEST_PATH = "/events/ingest"
EVENTS_PATH = "/events"


@dataclass(frozen=True)
class TransportResponse:
    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _decode(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


class HttpSyncClient:
    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        self.base = base_url.rstrip("/")
        self.timeout = timeout_seconds

    def ingest(self, pairing_token: str, payload: Dict[str, Any]) -> TransportResponse:
        return self._request("POST", INGEST_PATH, pairing_token, payload=payload)

    def fetch_events(self, pairing_token: str, since_ms: Optional[int] = None) -> TransportResponse:
        query = {"since": str(since_ms)} if since_ms else None
        return self._request("GET", EVENTS_PATH, pairing_token, query=query)

    def _request(
        self,
        method: str,
        path: str,
        pairing_token: str,
        payload: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, str]] = None,
    ) -> TransportResponse:
        url = f"{self.base}{path}"
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"

        headers = {"Authorization": f"Bearer {pairing_token}"}
        data = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload).encode("utf-8")

        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                return TransportResponse(response.status, _decode(response.read()))
        except urllib.error.HTTPError as e:
            body = _decode(e.read() or b"")
            logger.debug(f"{method} {path} returned {e.code}")
            return TransportResponse(e.code, body)
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            raise SyncTransportError(f"{method} {url} failed: {e}") from e
