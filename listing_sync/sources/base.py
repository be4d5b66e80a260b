from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable

from listing_sync.models import Coordinate

Document = dict[str, Any]
SnapshotCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]
Cancel = Callable[[], None]


class LiveDataSource(ABC):
    """Live query capability over named collections."""

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        query: Hashable,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Cancel:
        """Start delivering full snapshots of ``collection``; return a cancel callable."""

    def get(self, collection: str, doc_id: str) -> Document | None:
        """One-shot read of a single document; None when missing.

        Backends without point reads keep this default.
        """
        return None


class GeolocationSource(ABC):
    @abstractmethod
    def locate(self) -> Coordinate:
        """Return the device position or raise ``LocationUnavailable``."""


class ProfileStore(ABC):
    @abstractmethod
    def get(self, user_id: str) -> Document | None:
        """Return the loosely-shaped profile document, or None when not found."""


class ApplicationSink(ABC):
    @abstractmethod
    def write(self, record: Document) -> str:
        """Persist an application document and return its id."""
