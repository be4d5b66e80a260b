#!/usr/bin/env python3
"""Entry point: subscribe to listings, apply filters and print the results."""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).resolve().parent))

from listing_sync.config import get_env, load_settings
from listing_sync.enrichment import EnrichmentResolver
from listing_sync.location import LocationProvider
from listing_sync.log import get_logger
from listing_sync.models import EnrichedListing, Identity
from listing_sync.sources import MemoryLiveSource, MemoryProfileStore, PollingLiveSource, get_backends
from listing_sync.synchronizer import ListingSynchronizer

log = get_logger(__name__)


def _seed(backends, fixture: Path, settings) -> None:
    """Load listings/organizations/profiles from a YAML fixture into memory backends."""
    with open(fixture, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if isinstance(backends.live, MemoryLiveSource):
        backends.live.emit(settings.listings_collection, data.get("listings", []))
        backends.live.emit(settings.organizations_collection, data.get("organizations", []))
    for store in backends.profiles:
        if isinstance(store, MemoryProfileStore):
            store.profiles.update(data.get("profiles", {}))
    log.info("Seeded backend from %s", fixture)


def _print(listings: list[EnrichedListing]) -> None:
    print(f"\nShowing {len(listings)} jobs matching criteria.")
    for item in listings:
        badge = " [verified]" if item.verified else ""
        print(f"  {item.id:<10} {item.title} — {item.resolved_organization_name}{badge} · {item.locality}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Live listing synchronizer")
    parser.add_argument("--fixture", type=Path, help="YAML with listings/organizations/profiles")
    parser.add_argument("--search", default="", help="Search title, company or description")
    parser.add_argument("--category", default=None, help="Exact category (default: show all)")
    parser.add_argument("--nearby", action="store_true", help="Only listings within the nearby radius")
    parser.add_argument("--apply", metavar="LISTING_ID", help="Submit an application for this listing")
    parser.add_argument("--user", default="demo-user", help="User id used with --apply")
    parser.add_argument("--polls", type=int, default=1, help="Poll rounds against a REST backend")
    args = parser.parse_args()

    settings = load_settings()
    backends = get_backends(settings, get_env)
    if args.fixture:
        _seed(backends, args.fixture, settings)

    sync = ListingSynchronizer(
        backends.live,
        EnrichmentResolver(backends.profiles),
        backends.sink,
        location=LocationProvider(backends.geolocation),
        settings=settings,
    )
    sync.on_error(lambda err: log.error("Feed error: %s", err.message))
    sync.subscribe()

    if isinstance(backends.live, PollingLiveSource):
        for i in range(args.polls):
            if i:
                time.sleep(5)
            backends.live.poll()

    if args.nearby:
        sync.refresh_location()
        if not sync.radius_available:
            log.warning("Could not get your location. 'Nearby' search is disabled.")

    sync.set_filters(
        text=args.search,
        category=args.category or settings.show_all,
        nearby=args.nearby,
    )
    _print(sync.results)

    status = 0
    if args.apply:
        result = sync.apply(args.apply, Identity(user_id=args.user))
        log.info(result.message)
        status = 0 if result.ok else 1

    sync.unsubscribe()
    return status


if __name__ == "__main__":
    sys.exit(main())
