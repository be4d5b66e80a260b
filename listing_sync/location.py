"""Viewer location: one-shot lookups plus pushed updates, never raising."""
from __future__ import annotations

from typing import Callable, Union

from listing_sync.geo import is_valid
from listing_sync.log import get_logger
from listing_sync.models import Coordinate, ViewerLocation
from listing_sync.sources.base import GeolocationSource

log = get_logger(__name__)

LocationListener = Callable[[ViewerLocation], None]
Locator = Union[GeolocationSource, Callable[[], Coordinate]]


class LocationProvider:
    """Wraps a platform geolocation capability.

    Every outcome, good or bad, is delivered to listeners as a
    ``ViewerLocation``; failures carry ``valid=False`` and a reason so the UI
    can switch the nearby filter off instead of crashing.
    """

    def __init__(self, locator: Locator | None = None) -> None:
        self.locator = locator
        self._current = ViewerLocation.unavailable("Location not requested yet")
        self._listeners: list[LocationListener] = []

    @property
    def current(self) -> ViewerLocation:
        return self._current

    def subscribe(self, listener: LocationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def locate(self) -> ViewerLocation:
        """Ask the platform once. No retries; call again to retry."""
        if self.locator is None:
            return self._publish(ViewerLocation.unavailable("Geolocation is not supported"))
        try:
            if isinstance(self.locator, GeolocationSource):
                lat, lon = self.locator.locate()
            else:
                lat, lon = self.locator()
            return self.update(lat, lon)
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            log.warning("Geolocation failed, nearby search disabled: %s", reason)
            return self._publish(ViewerLocation.unavailable(reason))

    def update(self, lat: float, lon: float) -> ViewerLocation:
        """Accept a fix pushed by the host (e.g. a position watch)."""
        lat, lon = float(lat), float(lon)
        if not is_valid(lat, lon):
            log.warning("Ignoring out-of-range position (%s, %s)", lat, lon)
            return self._publish(ViewerLocation.unavailable(f"Invalid position ({lat}, {lon})"))
        log.info("Viewer location detected for nearby search")
        return self._publish(ViewerLocation(Coordinate(lat, lon), valid=True))

    def clear(self, reason: str = "Location cleared") -> ViewerLocation:
        return self._publish(ViewerLocation.unavailable(reason))

    def _publish(self, location: ViewerLocation) -> ViewerLocation:
        self._current = location
        for listener in list(self._listeners):
            try:
                listener(location)
            except Exception as exc:
                log.error("Location listener failed: %s", exc)
        return location
