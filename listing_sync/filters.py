"""Compound filtering of the joined listing view.

All predicates are independent and AND-combined; the result keeps the input
order. The radius predicate is the only one that depends on outside state
(the viewer's location) and switches itself off when that state is unknown.

``filter_applications`` applies the same kind of search to received
application documents.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Sequence

from listing_sync.geo import distance_km
from listing_sync.log import get_logger
from listing_sync.models import Coordinate, EnrichedListing, ViewerLocation

log = get_logger(__name__)

SHOW_ALL = "All"
DEFAULT_RADIUS_KM = 50.0


@dataclass(frozen=True)
class FilterCriteria:
    text: str = ""
    category: str = SHOW_ALL
    nearby: bool = False
    radius_km: float = DEFAULT_RADIUS_KM
    # Explicit centre for the radius search; the viewer's location when None.
    center: Coordinate | None = None
    category_field: str = "category"
    show_all: str = SHOW_ALL

    def update(self, **changes) -> FilterCriteria:
        return replace(self, **changes)


def matches_text(listing: EnrichedListing, text: str) -> bool:
    needle = text.strip().lower()
    if not needle:
        return True
    return (
        needle in listing.title.lower()
        or needle in listing.resolved_organization_name.lower()
        or needle in listing.description.lower()
    )


def matches_category(listing: EnrichedListing, criteria: FilterCriteria) -> bool:
    if criteria.category == criteria.show_all:
        return True
    return getattr(listing, criteria.category_field, None) == criteria.category


def radius_center(
    criteria: FilterCriteria, location: ViewerLocation | None
) -> Coordinate | None:
    """Centre of the radius search, or None when the radius filter must stay off."""
    if location is None or not location.valid or location.coordinates is None:
        return None
    return criteria.center or location.coordinates


def radius_available(location: ViewerLocation | None) -> bool:
    """Whether the nearby toggle can be offered at all."""
    return location is not None and location.valid and location.coordinates is not None


def within_radius(listing: EnrichedListing, center: Coordinate, radius_km: float) -> bool:
    if listing.coordinates is None:
        return False
    return distance_km(listing.coordinates, center) <= radius_km


def apply_filters(
    listings: Sequence[EnrichedListing],
    criteria: FilterCriteria,
    location: ViewerLocation | None = None,
) -> list[EnrichedListing]:
    """Return the listings passing every active predicate, in their original order."""
    center = None
    if criteria.nearby:
        center = radius_center(criteria, location)
        if center is None:
            log.debug("Nearby filter requested without a valid location; ignoring it")

    result: list[EnrichedListing] = []
    for listing in listings:
        if not matches_text(listing, criteria.text):
            continue
        if not matches_category(listing, criteria):
            continue
        if center is not None and not within_radius(listing, center, criteria.radius_km):
            continue
        result.append(listing)
    return result


def available_values(listings: Iterable[EnrichedListing], field: str = "locality") -> list[str]:
    """Sorted distinct non-empty values of ``field``, for filter dropdowns."""
    return sorted({str(v) for v in (getattr(item, field, None) for item in listings) if v})


def matches_applicant(application: Mapping[str, Any], text: str) -> bool:
    """Substring search over applicant name, email, job title and skills."""
    needle = text.strip().lower()
    if not needle:
        return True
    fields = [application.get(k) for k in ("userName", "userEmail", "jobTitle")]
    if any(isinstance(v, str) and needle in v.lower() for v in fields):
        return True
    skills = application.get("userSkills") or []
    return any(isinstance(s, str) and needle in s.lower() for s in skills)


def filter_applications(
    applications: Iterable[Mapping[str, Any]],
    text: str = "",
    status: str = SHOW_ALL,
) -> list[Mapping[str, Any]]:
    """Received applications matching ``status`` and ``text``, in input order."""
    return [
        app for app in applications
        if (status == SHOW_ALL or app.get("status") == status) and matches_applicant(app, text)
    ]
