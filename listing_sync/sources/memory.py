"""In-process backend: live collections, profiles and applications held in memory.

Used by the tests and as the fallback when no API is configured.
"""
from __future__ import annotations

import copy
import itertools
from typing import Hashable

from listing_sync.errors import LocationUnavailable, TransportError
from listing_sync.log import get_logger
from listing_sync.models import Coordinate
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


class MemoryLiveSource(LiveDataSource):
    """Collections of documents that push a fresh snapshot on every change.

    ``subscribe`` delivers the current contents immediately, like a live query
    does on attach. ``emit``/``upsert``/``remove`` push to every listener of
    the collection; ``fail`` pushes an error instead.
    """

    def __init__(self, collections: dict[str, list[Document]] | None = None) -> None:
        self._docs: dict[str, list[Document]] = {
            name: list(docs) for name, docs in (collections or {}).items()
        }
        self._listeners: dict[int, tuple[str, SnapshotCallback, ErrorCallback]] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        collection: str,
        query: Hashable,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Cancel:
        listener_id = next(self._ids)
        self._listeners[listener_id] = (collection, on_snapshot, on_error)
        log.debug("Memory subscription #%d on %s", listener_id, collection)
        on_snapshot(self.snapshot(collection))

        def cancel() -> None:
            self._listeners.pop(listener_id, None)

        return cancel

    def listener_count(self, collection: str | None = None) -> int:
        return sum(
            1 for name, _, _ in self._listeners.values()
            if collection is None or name == collection
        )

    def snapshot(self, collection: str) -> list[Document]:
        return copy.deepcopy(self._docs.get(collection, []))

    def get(self, collection: str, doc_id: str) -> Document | None:
        for doc in self._docs.get(collection, []):
            if doc.get("id") == doc_id:
                return copy.deepcopy(doc)
        return None

    def emit(self, collection: str, docs: list[Document]) -> None:
        """Replace the whole collection and notify listeners."""
        self._docs[collection] = list(docs)
        self._notify(collection)

    def upsert(self, collection: str, doc: Document) -> None:
        docs = [d for d in self._docs.get(collection, []) if d.get("id") != doc.get("id")]
        docs.append(doc)
        self.emit(collection, docs)

    def remove(self, collection: str, doc_id: str) -> None:
        self.emit(
            collection,
            [d for d in self._docs.get(collection, []) if d.get("id") != doc_id],
        )

    def fail(self, collection: str, error: Exception) -> None:
        for name, _, on_error in list(self._listeners.values()):
            if name == collection:
                on_error(error)

    def _notify(self, collection: str) -> None:
        for name, on_snapshot, _ in list(self._listeners.values()):
            if name == collection:
                on_snapshot(self.snapshot(collection))


class MemoryProfileStore(ProfileStore):
    def __init__(self, profiles: dict[str, Document] | None = None) -> None:
        self.profiles: dict[str, Document] = dict(profiles or {})

    def get(self, user_id: str) -> Document | None:
        doc = self.profiles.get(user_id)
        return copy.deepcopy(doc) if doc is not None else None


class MemoryApplicationSink(ApplicationSink):
    """Records written applications; ``fail_with`` makes the next writes raise."""

    def __init__(self) -> None:
        self.records: dict[str, Document] = {}
        self.fail_with: TransportError | None = None
        self._ids = itertools.count(1)

    def write(self, record: Document) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        record_id = f"app-{next(self._ids)}"
        self.records[record_id] = copy.deepcopy(record)
        log.debug("Stored application %s for job %s", record_id, record.get("jobId"))
        return record_id


class StaticGeolocation(GeolocationSource):
    """Fixed position, or a fixed failure when constructed with ``None``."""

    def __init__(self, coordinates: Coordinate | None, reason: str = "Location not available") -> None:
        self.coordinates = coordinates
        self.reason = reason

    def locate(self) -> Coordinate:
        if self.coordinates is None:
            raise LocationUnavailable(self.reason)
        return self.coordinates
