"""Public surface for a listing view: subscribe, read filtered results, apply.

Lifecycle::

    IDLE --subscribe()--> SUBSCRIBED --unsubscribe()--> UNSUBSCRIBED
                              ^                              |
                              +---------subscribe()----------+

Filtered results are re-emitted after every upstream snapshot, every filter
change and every location change. ``apply`` does not depend on the lifecycle
state and never mutates it.
"""
from __future__ import annotations

from enum import Enum
from typing import Callable

from listing_sync.config import Settings
from listing_sync.enrichment import EnrichmentResolver
from listing_sync.errors import TransportError, as_transport_error
from listing_sync.filters import FilterCriteria, apply_filters, available_values, radius_available
from listing_sync.join import JoinResolver, join_listing, parse_listing, parse_organization
from listing_sync.location import LocationProvider
from listing_sync.log import get_logger
from listing_sync.models import (
    ApplicationRecord,
    EnrichedListing,
    Identity,
    SubmissionResult,
    ViewerLocation,
)
from listing_sync.sources.base import ApplicationSink, LiveDataSource
from listing_sync.subscriptions import SubscriptionHandle, SubscriptionManager

log = get_logger(__name__)

ResultsListener = Callable[[list[EnrichedListing]], None]
ErrorListener = Callable[[TransportError], None]


class SyncState(str, Enum):
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"


class ListingSynchronizer:
    def __init__(
        self,
        live: LiveDataSource,
        enrichment: EnrichmentResolver,
        sink: ApplicationSink,
        location: LocationProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.live = live
        self.subscriptions = SubscriptionManager(live)
        self.join = JoinResolver(
            self.settings.locality_coordinates, self.settings.legacy_name_join
        )
        self.enrichment = enrichment
        self.sink = sink
        self.location = location or LocationProvider()
        self.criteria = FilterCriteria(
            category=self.settings.show_all,
            radius_km=self.settings.nearby_radius_km,
            category_field=self.settings.category_field,
            show_all=self.settings.show_all,
        )
        self.state = SyncState.IDLE
        self._results: list[EnrichedListing] = []
        self._result_listeners: list[ResultsListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._listings_handle: SubscriptionHandle | None = None
        self._organizations_handle: SubscriptionHandle | None = None

        self.join.add_listener(lambda _joined: self._emit())
        self.location.subscribe(self._on_location)

    # ── Listeners ───────────────────────────────────────────────────────

    def on_results(self, listener: ResultsListener) -> Callable[[], None]:
        self._result_listeners.append(listener)
        return lambda: self._discard(self._result_listeners, listener)

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        self._error_listeners.append(listener)
        return lambda: self._discard(self._error_listeners, listener)

    @staticmethod
    def _discard(listeners: list, listener: Callable) -> None:
        if listener in listeners:
            listeners.remove(listener)

    # ── Lifecycle ───────────────────────────────────────────────────────

    def subscribe(self) -> None:
        """Start both feeds. While subscribed, only feeds that failed to attach are retried."""
        if self.state is SyncState.SUBSCRIBED:
            if self._feeds_live():
                log.debug("subscribe() while already subscribed; ignoring")
                return
            log.info("Re-attaching feeds that failed to start")
        else:
            self.join.reset()
            self.state = SyncState.SUBSCRIBED

        if not self.subscriptions.is_active(self._listings_handle):
            self._listings_handle = self.subscriptions.start(
                self.settings.listings_collection,
                self.settings.listings_order_by,
                self.join.on_listings,
                self._on_feed_error,
            )
        if not self.subscriptions.is_active(self._organizations_handle):
            self._organizations_handle = self.subscriptions.start(
                self.settings.organizations_collection,
                None,
                self.join.on_organizations,
                self._on_feed_error,
            )
        if self._feeds_live():
            log.info(
                "Synchronizer subscribed to %s + %s",
                self.settings.listings_collection,
                self.settings.organizations_collection,
            )
        else:
            log.warning("Subscribed with a feed down; call subscribe() again to retry")

    def _feeds_live(self) -> bool:
        return self.subscriptions.is_active(self._listings_handle) and self.subscriptions.is_active(
            self._organizations_handle
        )

    def unsubscribe(self) -> None:
        if self.state is not SyncState.SUBSCRIBED:
            return
        self.subscriptions.stop(self._listings_handle)
        self.subscriptions.stop(self._organizations_handle)
        self._listings_handle = None
        self._organizations_handle = None
        self.state = SyncState.UNSUBSCRIBED
        log.info("Synchronizer unsubscribed")

    # ── Filters & location ──────────────────────────────────────────────

    @property
    def results(self) -> list[EnrichedListing]:
        return list(self._results)

    @property
    def radius_available(self) -> bool:
        return radius_available(self.location.current)

    def set_filters(self, **changes) -> list[EnrichedListing]:
        """Update any FilterCriteria field (text, category, nearby, radius_km, center)."""
        self.criteria = self.criteria.update(**changes)
        if self.criteria.nearby and not self.radius_available:
            log.info("Nearby search is unavailable until the location is known")
        return self._emit()

    def refresh_location(self) -> ViewerLocation:
        return self.location.locate()

    def available_values(self, field: str | None = None) -> list[str]:
        return available_values(self.join.output, field or self.criteria.category_field)

    def _on_location(self, location: ViewerLocation) -> None:
        if not location.valid:
            log.info("Nearby search disabled: %s", location.error)
        self._emit()

    # ── Apply ───────────────────────────────────────────────────────────

    def find(self, listing_id: str) -> EnrichedListing | None:
        for listing in self.join.output:
            if listing.id == listing_id:
                return listing
        return None

    def lookup(self, listing_id: str) -> EnrichedListing | None:
        """The joined view when it has ``listing_id``, else a one-shot read of the backend.

        Works in any lifecycle state. Raises TransportError when the listing
        read fails; a failed organization read falls back to the raw name.
        """
        found = self.find(listing_id)
        if found is not None:
            return found

        listings = self.settings.listings_collection
        try:
            doc = self.live.get(listings, listing_id)
        except Exception as exc:
            raise as_transport_error(exc, listings) from exc
        if not isinstance(doc, dict):
            return None
        doc.setdefault("id", listing_id)
        listing = parse_listing(doc, self.settings.locality_coordinates)
        if listing is None:
            return None
        if not listing.organization_id:
            return self.join.resolve(listing)

        organization = self.join.organizations.get(listing.organization_id)
        if organization is None:
            organizations = self.settings.organizations_collection
            try:
                org_doc = self.live.get(organizations, listing.organization_id)
            except Exception as exc:
                err = as_transport_error(exc, organizations)
                log.warning("Organization %s unavailable: %s", listing.organization_id, err.message)
                org_doc = None
            if isinstance(org_doc, dict):
                org_doc.setdefault("id", listing.organization_id)
                organization = parse_organization(org_doc)
        return join_listing(listing, organization)

    def apply(self, listing: str | EnrichedListing, identity: Identity | None) -> SubmissionResult:
        """Enrich the applicant's profile and hand the application to the sink."""
        if identity is None or not identity.user_id:
            return SubmissionResult(ok=False, message="Please log in to apply for jobs.")

        if isinstance(listing, str):
            try:
                target = self.lookup(listing)
            except TransportError as err:
                log.error("Could not load listing %s: %s", listing, err.message)
                return SubmissionResult(
                    ok=False, message=f"Could not load listing: {err.message}", error=err
                )
        else:
            target = listing
        if target is None:
            return SubmissionResult(ok=False, message=f"Unknown listing {listing!r}")

        profile = self.enrichment.resolve(identity)
        record = ApplicationRecord(
            listing_id=target.id,
            listing_title=target.title,
            organization_id=target.organization_id or "",
            organization_name=target.resolved_organization_name,
            user_id=identity.user_id,
            user_name=profile.name,
            user_email=profile.email,
            user_phone=profile.phone or "Not provided",
            user_skills=list(profile.skills),
            user_experience=profile.experience or "Not specified",
            user_education=profile.education or "Not specified",
            user_resume_url=profile.resume_reference,
        )

        try:
            record_id = self.sink.write(record.to_document())
        except Exception as exc:
            err = as_transport_error(exc, self.settings.applications_collection)
            log.error("Failed to submit application for %s: %s", target.id, err.message)
            return SubmissionResult(
                ok=False,
                message=f"Failed to submit job application: {err.message}",
                record=record,
                error=err,
            )

        log.info("Application %s submitted for %s", record_id, target.title)
        return SubmissionResult(
            ok=True,
            message="Application submitted successfully!",
            record_id=record_id,
            record=record,
        )

    # ── Internals ───────────────────────────────────────────────────────

    def _on_feed_error(self, error: TransportError) -> None:
        log.error(
            "Live feed %s failed (recoverable=%s): %s",
            error.source, error.recoverable, error.message,
        )
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception as exc:
                log.error("Error listener failed: %s", exc)

    def _emit(self) -> list[EnrichedListing]:
        self._results = apply_filters(self.join.output, self.criteria, self.location.current)
        results = self.results
        for listener in list(self._result_listeners):
            try:
                listener(list(results))
            except Exception as exc:
                log.error("Results listener failed: %s", exc)
        return results
