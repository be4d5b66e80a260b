"""HTTP document API backend.

Endpoints (relative to ``api_url``):
    GET  /collections/<name>?orderBy=...   → {"documents": [...]} or [...]
    GET  /collections/<name>/<id>          → {...}, 404 when missing
    POST /collections/<name>               → {"id": "..."}

Live queries are emulated by polling: the host loop calls
``PollingLiveSource.poll()`` on its own schedule and a snapshot is delivered
only when a collection's payload changed since the last delivery.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Hashable

import requests

from listing_sync.errors import LocationUnavailable, TransportError, as_transport_error
from listing_sync.log import get_logger
from listing_sync.models import Coordinate
from listing_sync.retry import retry
from listing_sync.sources.base import (
    ApplicationSink,
    Cancel,
    Document,
    ErrorCallback,
    GeolocationSource,
    LiveDataSource,
    ProfileStore,
    SnapshotCallback,
)

log = get_logger(__name__)

_RETRYABLE = (requests.ConnectionError, requests.Timeout, requests.HTTPError)


class ApiClient:
    def __init__(
        self,
        api_url: str,
        token: str = "",
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def url(self, *parts: str) -> str:
        return "/".join([self.api_url, "collections", *parts])

    @retry(max_attempts=3, base_delay=1.0, retryable=_RETRYABLE, label="api GET")
    def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url``; None on 404, TransportError on 401/403, retried otherwise."""
        r = self.session.get(url, params=params, timeout=self.timeout)
        if r.status_code in (401, 403):
            raise TransportError(
                f"Permission denied ({r.status_code}) for {url}", recoverable=False
            )
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json()

    @retry(
        max_attempts=2, base_delay=1.0, retryable=(requests.ConnectionError,), label="api POST"
    )
    def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        r = self.session.post(url, json=payload, timeout=self.timeout)
        if r.status_code in (401, 403):
            raise TransportError(
                f"Permission denied ({r.status_code}) for {url}", recoverable=False
            )
        r.raise_for_status()
        return r.json()


def _documents(payload: Any) -> list[Document]:
    if isinstance(payload, dict):
        payload = payload.get("documents", [])
    if not isinstance(payload, list):
        return []
    return [doc for doc in payload if isinstance(doc, dict)]


def _query_params(query: Hashable) -> dict[str, Any]:
    """Queries are hashable: None, a string (orderBy field) or a tuple of pairs."""
    if query is None:
        return {}
    if isinstance(query, str):
        return {"orderBy": query}
    if isinstance(query, tuple):
        try:
            return dict(query)
        except (TypeError, ValueError):
            pass
    return {"q": str(query)}


@dataclass
class _Poll:
    collection: str
    query: Hashable
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    last_digest: str | None = None


class PollingLiveSource(LiveDataSource):
    def __init__(self, client: ApiClient) -> None:
        self.client = client
        self._polls: dict[int, _Poll] = {}
        self._next_id = 0

    def subscribe(
        self,
        collection: str,
        query: Hashable,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Cancel:
        self._next_id += 1
        poll_id = self._next_id
        self._polls[poll_id] = _Poll(collection, query, on_snapshot, on_error)

        def cancel() -> None:
            self._polls.pop(poll_id, None)

        return cancel

    def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            doc = self.client.get_json(self.client.url(collection, doc_id))
        except requests.RequestException as exc:
            raise as_transport_error(exc, collection) from exc
        return doc if isinstance(doc, dict) else None

    def poll(self) -> int:
        """Fetch every subscribed collection once; return the number of snapshots delivered."""
        delivered = 0
        for poll_id, poll in list(self._polls.items()):
            try:
                payload = self.client.get_json(
                    self.client.url(poll.collection), params=_query_params(poll.query)
                )
            except (requests.RequestException, TransportError) as exc:
                err = as_transport_error(exc, poll.collection)
                log.warning("Polling %s failed: %s", poll.collection, err.message)
                if poll_id in self._polls:
                    poll.on_error(err)
                continue

            docs = _documents(payload)
            digest = hashlib.sha256(
                json.dumps(docs, sort_keys=True, default=str).encode()
            ).hexdigest()
            if digest == poll.last_digest:
                continue
            # Cancelled while the request was in flight.
            if poll_id not in self._polls:
                continue
            poll.last_digest = digest
            poll.on_snapshot(docs)
            delivered += 1
        return delivered


class RestProfileStore(ProfileStore):
    def __init__(self, client: ApiClient, collection: str = "artifacts") -> None:
        self.client = client
        self.collection = collection

    def get(self, user_id: str) -> Document | None:
        try:
            doc = self.client.get_json(self.client.url(self.collection, user_id))
        except requests.RequestException as exc:
            raise as_transport_error(exc, self.collection) from exc
        return doc if isinstance(doc, dict) else None


class RestApplicationSink(ApplicationSink):
    def __init__(self, client: ApiClient, collection: str = "jobApplications") -> None:
        self.client = client
        self.collection = collection

    def write(self, record: Document) -> str:
        try:
            payload = self.client.post_json(self.client.url(self.collection), record)
        except requests.RequestException as exc:
            raise as_transport_error(exc, self.collection) from exc
        record_id = payload.get("id") if isinstance(payload, dict) else None
        if not record_id:
            raise TransportError(
                "Write acknowledged without an id", recoverable=True, source=self.collection
            )
        return str(record_id)


class IpGeolocation(GeolocationSource):
    """Approximate position from an IP lookup service (ipapi.co or ip-api.com shape)."""

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self.timeout = timeout

    def locate(self) -> Coordinate:
        try:
            r = requests.get(self.url, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise LocationUnavailable(f"IP geolocation failed: {exc}") from exc

        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lon"))
        if lat is None or lon is None:
            raise LocationUnavailable(data.get("reason") or "IP geolocation returned no position")
        return Coordinate(float(lat), float(lon))
