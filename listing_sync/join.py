"""Join the latest listings snapshot with the latest organizations snapshot.

Both sides change independently, so the joined view is rebuilt from scratch
whenever either snapshot arrives instead of being patched in place. Snapshots
are small (hundreds of documents), which keeps a full O(n + m) rebuild cheap.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable

from listing_sync.geo import is_valid
from listing_sync.log import get_logger
from listing_sync.models import Coordinate, EnrichedListing, Listing, Organization
from listing_sync.sources.base import Document

log = get_logger(__name__)

ResultListener = Callable[[list[EnrichedListing]], None]


def _first(doc: Document, *keys: str) -> Any:
    """First truthy value among ``keys``."""
    for key in keys:
        value = doc.get(key)
        if value:
            return value
    return None


_TRUE_STRINGS = frozenset({"true", "yes", "1"})


def _flag(doc: Document, *keys: str) -> bool:
    """The first key present decides; strings are parsed, not truth-tested."""
    for key in keys:
        value = doc.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return value is True or (type(value) is int and value == 1)
    return False


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return []


def _coordinates(doc: Document) -> Coordinate | None:
    lat, lon = doc.get("latitude"), doc.get("longitude")
    pair = doc.get("coordinates")
    if (lat is None or lon is None) and isinstance(pair, (list, tuple)) and len(pair) == 2:
        lat, lon = pair
    if isinstance(pair, dict):
        lat, lon = pair.get("lat", lat), pair.get("lon", pair.get("lng", lon))
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return None
    # 0/0 is what an unset numeric field looks like in the posting form.
    if (lat == 0 and lon == 0) or not is_valid(lat, lon):
        return None
    return Coordinate(lat, lon)


def parse_listing(
    doc: Document, locality_coordinates: dict[str, Coordinate] | None = None
) -> Listing | None:
    """Build a Listing from a loosely-shaped document, or None if it has no id."""
    if not isinstance(doc, dict) or not doc.get("id"):
        log.warning("Skipping listing document without id: %r", doc)
        return None

    locality = str(_first(doc, "city", "locality", "location") or "Remote")
    coordinates = _coordinates(doc)
    if coordinates is None and locality_coordinates:
        coordinates = locality_coordinates.get(locality)

    organization_id = _first(doc, "companyId", "organizationId")
    return Listing(
        id=str(doc["id"]),
        title=str(_first(doc, "jobTitle", "title") or "Untitled Position"),
        organization_id=str(organization_id) if organization_id else None,
        raw_organization_name=str(
            _first(doc, "companyName", "rawOrganizationName", "organizationName")
            or "Unknown Company"
        ),
        locality=locality,
        description=str(doc.get("description") or "No description available"),
        coordinates=coordinates,
        requirements=_as_list(doc.get("requirements")),
        compensation=str(_first(doc, "salary", "compensation") or "Not specified"),
        category=str(_first(doc, "category", "jobType", "employmentType") or "Full-time"),
    )


def parse_organization(doc: Document) -> Organization | None:
    if not isinstance(doc, dict) or not doc.get("id"):
        log.warning("Skipping organization document without id: %r", doc)
        return None
    return Organization(
        id=str(doc["id"]),
        display_name=str(_first(doc, "displayName", "companyName", "name") or ""),
        verified=_flag(doc, "verified", "isVerified"),
        logo=_first(doc, "logoUrl", "logo"),
    )


def join_listing(listing: Listing, organization: Organization | None) -> EnrichedListing:
    if organization is None:
        return EnrichedListing.from_listing(listing, listing.raw_organization_name, False)
    name = organization.display_name or listing.raw_organization_name
    return EnrichedListing.from_listing(listing, name, organization.verified)


class JoinResolver:
    """Owns the latest snapshot pair and the joined output derived from it."""

    def __init__(
        self,
        locality_coordinates: dict[str, Coordinate] | None = None,
        legacy_name_join: bool = False,
    ) -> None:
        self.locality_coordinates = dict(locality_coordinates or {})
        self.legacy_name_join = legacy_name_join
        self._listings: list[Listing] = []
        self._organizations: dict[str, Organization] = {}
        self._by_name: dict[str, Organization] = {}
        self._output: list[EnrichedListing] = []
        self._listeners: list[ResultListener] = []

    @property
    def output(self) -> list[EnrichedListing]:
        return list(self._output)

    @property
    def organizations(self) -> dict[str, Organization]:
        return dict(self._organizations)

    def add_listener(self, listener: ResultListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def on_listings(self, docs: Iterable[Document]) -> list[EnrichedListing]:
        parsed = (parse_listing(d, self.locality_coordinates) for d in docs)
        self._listings = [listing for listing in parsed if listing is not None]
        return self._recompute()

    def on_organizations(self, docs: Iterable[Document]) -> list[EnrichedListing]:
        organizations = [o for o in (parse_organization(d) for d in docs) if o is not None]
        self._organizations = {o.id: o for o in organizations}
        self._by_name = {
            o.display_name.strip().lower(): o for o in organizations if o.display_name
        }
        return self._recompute()

    def reset(self) -> None:
        self._listings = []
        self._organizations = {}
        self._by_name = {}
        self._output = []

    def resolve(self, listing: Listing) -> EnrichedListing:
        organization = None
        if listing.organization_id:
            organization = self._organizations.get(listing.organization_id)
        elif self.legacy_name_join:
            organization = self._by_name.get(listing.raw_organization_name.strip().lower())

        return join_listing(listing, organization)

    def _recompute(self) -> list[EnrichedListing]:
        self._output = [self.resolve(listing) for listing in self._listings]
        log.debug(
            "Joined %d listings against %d organizations",
            len(self._output), len(self._organizations),
        )
        output = self.output
        for listener in list(self._listeners):
            listener(list(output))
        return output
