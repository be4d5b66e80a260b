from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .base import ApplicationSink, GeolocationSource, LiveDataSource, ProfileStore
from .memory import (
    MemoryApplicationSink,
    MemoryLiveSource,
    MemoryProfileStore,
    StaticGeolocation,
)
from .rest import (
    ApiClient,
    IpGeolocation,
    PollingLiveSource,
    RestApplicationSink,
    RestProfileStore,
)

from listing_sync.config import Settings
from listing_sync.log import get_logger

log = get_logger(__name__)

__all__ = [
    "LiveDataSource", "GeolocationSource", "ProfileStore", "ApplicationSink",
    "MemoryLiveSource", "MemoryProfileStore", "MemoryApplicationSink", "StaticGeolocation",
    "ApiClient", "PollingLiveSource", "RestProfileStore", "RestApplicationSink",
    "IpGeolocation", "Backends", "get_backends",
]


@dataclass
class Backends:
    live: LiveDataSource
    profiles: list[ProfileStore]
    sink: ApplicationSink
    geolocation: GeolocationSource | None


def get_backends(settings: Settings, env_getter: Callable[..., str]) -> Backends:
    api_url = settings.api_url or env_getter("LISTING_SYNC_API_URL")
    geolocation: GeolocationSource | None = None
    if settings.geolocation_url:
        geolocation = IpGeolocation(settings.geolocation_url, timeout=settings.http_timeout)
        log.info("Registered geolocation: %s", settings.geolocation_url)

    if api_url:
        client = ApiClient(
            api_url,
            token=settings.api_token or env_getter("LISTING_SYNC_API_TOKEN"),
            timeout=settings.http_timeout,
        )
        log.info("Registered backend: REST API at %s", client.api_url)
        return Backends(
            live=PollingLiveSource(client),
            profiles=[RestProfileStore(client, settings.profiles_collection)],
            sink=RestApplicationSink(client, settings.applications_collection),
            geolocation=geolocation,
        )

    log.info("No API URL found — using in-memory backend")
    return Backends(
        live=MemoryLiveSource(),
        profiles=[MemoryProfileStore()],
        sink=MemoryApplicationSink(),
        geolocation=geolocation,
    )
