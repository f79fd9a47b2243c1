"""Shared fixtures: services wired to in-memory collaborators and a fake clock."""

import pytest

from app.services.cache import LocalCache, ReviewCache, ToiletCache
from app.services.reviews import ReviewService
from app.services.toilets import ToiletService
from tests.fakes import FakeClock, InMemoryDocumentStore, InMemoryKeyValueStore

HOUR_MS = 60 * 60 * 1000


def toilet_doc(name, lat, lng, rating=4.0, count=0, **features):
    return {
        "name": name,
        "address": f"{name} street",
        "latitude": lat,
        "longitude": lng,
        "rating": rating,
        "reviewCount": count,
        "features": {
            "isAccessible": features.get("accessible", False),
            "hasBabyChanging": features.get("baby", False),
            "hasAblution": features.get("ablution", False),
            "isFree": features.get("free", False),
        },
        "openHours": "09:00 - 21:00",
        "photos": [],
        "lastUpdated": 1,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def local_cache(kv, clock) -> LocalCache:
    return LocalCache(kv, clock=clock)


@pytest.fixture
def toilet_cache(local_cache) -> ToiletCache:
    return ToiletCache(local_cache)


@pytest.fixture
def review_cache(local_cache) -> ReviewCache:
    return ReviewCache(local_cache)


@pytest.fixture
def toilet_service(store, toilet_cache, clock) -> ToiletService:
    return ToiletService(store, toilet_cache, clock=clock)


@pytest.fixture
def review_service(store, review_cache, toilet_service, clock) -> ReviewService:
    return ReviewService(store, review_cache, toilet_service, clock=clock)


@pytest.fixture
def seeded_store(store) -> InMemoryDocumentStore:
    """Four toilets around the Tashkent centre (41.2995, 69.2401)."""
    store.seed("toilets", "near", toilet_doc("Near", 41.3057, 69.2418, rating=3.5, free=True, accessible=True))
    store.seed("toilets", "mid", toilet_doc("Mid", 41.3110, 69.2797, rating=4.5, baby=True))
    store.seed("toilets", "far", toilet_doc("Far", 41.3652, 69.2857, rating=4.3, free=True))
    store.seed("toilets", "near-twin", toilet_doc("Near twin", 41.3057, 69.2418, rating=2.0, ablution=True))
    return store
