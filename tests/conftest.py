import os

# Keep test runs from writing log files into the checkout.
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from listing_sync.config import Settings
from listing_sync.enrichment import EnrichmentResolver
from listing_sync.location import LocationProvider
from listing_sync.sources.memory import (
    MemoryApplicationSink,
    MemoryLiveSource,
    MemoryProfileStore,
    StaticGeolocation,
)
from listing_sync.synchronizer import ListingSynchronizer

MUMBAI = (19.0, 72.8)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def live():
    return MemoryLiveSource()


@pytest.fixture
def profiles():
    return MemoryProfileStore()


@pytest.fixture
def sink():
    return MemoryApplicationSink()


@pytest.fixture
def make_sync(live, profiles, sink, settings):
    def _make(location=MUMBAI, **overrides):
        for key, value in overrides.items():
            setattr(settings, key, value)
        provider = LocationProvider(StaticGeolocation(location))
        return ListingSynchronizer(
            live, EnrichmentResolver(profiles), sink, location=provider, settings=settings
        )

    return _make
