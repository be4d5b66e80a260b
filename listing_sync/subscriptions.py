"""At most one live subscription per (collection, query) with deterministic teardown.

Every delivery from the backend goes through a liveness check on the handle
it was started for. Once ``stop`` runs, a snapshot or error that the backend
had already queued for that handle is dropped instead of reaching the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Hashable

from listing_sync.errors import TransportError, as_transport_error
from listing_sync.log import get_logger
from listing_sync.sources.base import Cancel, Document, LiveDataSource

log = get_logger(__name__)

SubscriptionKey = tuple[str, Hashable]


@dataclass(eq=False)
class SubscriptionHandle:
    source_name: str
    query: Hashable
    generation: int
    active: bool = True
    delivered: int = 0
    _cancel: Cancel | None = field(default=None, repr=False)

    @property
    def key(self) -> SubscriptionKey:
        return (self.source_name, self.query)


class SubscriptionManager:
    def __init__(self, backend: LiveDataSource) -> None:
        self.backend = backend
        self._handles: dict[SubscriptionKey, SubscriptionHandle] = {}
        self._generation = 0

    def start(
        self,
        source_name: str,
        query: Hashable,
        on_snapshot: Callable[[list[Document]], None],
        on_error: Callable[[TransportError], None],
    ) -> SubscriptionHandle:
        """Subscribe unless ``(source_name, query)`` is already live; return its handle."""
        key = (source_name, query)
        existing = self._handles.get(key)
        if existing is not None and existing.active:
            log.debug("Subscription %s already active (gen %d)", key, existing.generation)
            return existing

        self._generation += 1
        handle = SubscriptionHandle(source_name, query, self._generation)
        # Registered before attaching: backends may deliver the first snapshot
        # synchronously from inside subscribe().
        self._handles[key] = handle

        def deliver_snapshot(docs: list[Document]) -> None:
            if not self._is_live(handle):
                log.debug("Dropping stale snapshot for %s (gen %d)", key, handle.generation)
                return
            handle.delivered += 1
            on_snapshot(docs)

        def deliver_error(exc: Exception) -> None:
            if not self._is_live(handle):
                log.debug("Dropping stale error for %s (gen %d): %s", key, handle.generation, exc)
                return
            on_error(as_transport_error(exc, source_name))

        try:
            cancel = self.backend.subscribe(source_name, query, deliver_snapshot, deliver_error)
        except Exception as exc:
            err = as_transport_error(exc, source_name)
            log.error("Could not subscribe to %s: %s", source_name, err.message)
            self._release(handle)
            on_error(err)
            return handle

        if handle.active:
            handle._cancel = cancel
            log.info("Subscribed to %s (gen %d)", source_name, handle.generation)
        else:
            # Stopped from inside the first callback.
            cancel()
        return handle

    def stop(self, handle: SubscriptionHandle | None) -> None:
        """Cancel delivery for ``handle``. Safe to call repeatedly."""
        if handle is None or not handle.active:
            return
        cancel = handle._cancel
        self._release(handle)
        if cancel is not None:
            try:
                cancel()
            except Exception as exc:
                log.warning("Cancel for %s raised: %s", handle.source_name, exc)
        log.info("Stopped subscription to %s (gen %d)", handle.source_name, handle.generation)

    def stop_all(self) -> None:
        for handle in list(self._handles.values()):
            self.stop(handle)

    def is_active(self, handle: SubscriptionHandle | None) -> bool:
        return handle is not None and self._is_live(handle)

    def active(self) -> list[SubscriptionHandle]:
        return [h for h in self._handles.values() if h.active]

    def _is_live(self, handle: SubscriptionHandle) -> bool:
        return handle.active and self._handles.get(handle.key) is handle

    def _release(self, handle: SubscriptionHandle) -> None:
        handle.active = False
        handle._cancel = None
        if self._handles.get(handle.key) is handle:
            del self._handles[handle.key]
