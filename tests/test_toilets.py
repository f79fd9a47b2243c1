"""Tests for the toilet data-access service."""

import pytest

from app.core.errors import DataUnavailable, NotFound, StoreErrorCode
from app.db.documents import StoredDocument
from app.schemas.common import Coordinates, DataSource
from app.schemas.toilet import Filters, Toilet, ToiletCreate, ToiletFeatures, ToiletWithDistance
from app.services.toilets import ToiletService, apply_filters, normalize_toilet
from tests.conftest import HOUR_MS
from tests.fakes import T0

CENTER = Coordinates(latitude=41.2995, longitude=69.2401)


def _scans(store) -> int:
    return sum(1 for call in store.calls if call[0] == "scan")


def _with_distance(toilet_id: str, distance: float, rating: float = 4.0, **features) -> ToiletWithDistance:
    return ToiletWithDistance(
        id=toilet_id,
        rating=rating,
        distance=distance,
        features=ToiletFeatures(**features),
    )


# ── Normalisation ─────────────────────────────────────────────────────────────

def test_normalize_fills_defaults() -> None:
    toilet = normalize_toilet(StoredDocument(id="x", data={}), now=123)
    assert toilet.name == "Неизвестно"
    assert toilet.address == ""
    assert toilet.latitude == 0
    assert toilet.rating == 0
    assert toilet.review_count == 0
    assert toilet.features == ToiletFeatures()
    assert toilet.open_hours == ""
    assert toilet.photos == []
    assert toilet.last_updated == 123


def test_normalize_partial_features() -> None:
    doc = StoredDocument(id="x", data={"name": "A", "features": {"isFree": True}, "lastUpdated": 7})
    toilet = normalize_toilet(doc, now=123)
    assert toilet.features.is_free is True
    assert toilet.features.is_accessible is False
    assert toilet.last_updated == 7


# ── fetch_all ─────────────────────────────────────────────────────────────────

async def test_fetch_all_first_call_hits_network(seeded_store, toilet_service: ToiletService) -> None:
    result = await toilet_service.fetch_all()
    assert result.source is DataSource.network
    assert [t.id for t in result.toilets] == ["near", "mid", "far", "near-twin"]


async def test_fetch_all_serves_valid_cache(seeded_store, toilet_service: ToiletService) -> None:
    await toilet_service.fetch_all()
    result = await toilet_service.fetch_all()
    assert result.source is DataSource.cache
    assert len(result.toilets) == 4
    assert _scans(seeded_store) == 1


async def test_fetch_all_force_refresh_skips_cache(seeded_store, toilet_service: ToiletService) -> None:
    await toilet_service.fetch_all()
    result = await toilet_service.fetch_all(force_refresh=True)
    assert result.source is DataSource.network
    assert _scans(seeded_store) == 2


async def test_fetch_all_refetches_after_ttl(seeded_store, toilet_service: ToiletService, clock) -> None:
    await toilet_service.fetch_all()
    clock.advance(HOUR_MS + 1)
    result = await toilet_service.fetch_all()
    assert result.source is DataSource.network


async def test_fetch_all_writes_through(seeded_store, toilet_service: ToiletService, toilet_cache) -> None:
    await toilet_service.fetch_all()
    cached = await toilet_cache.get()
    assert [t.id for t in cached] == ["near", "mid", "far", "near-twin"]
    assert await toilet_cache.timestamp() == T0


async def test_fetch_all_network_failure_serves_stale_cache(
    seeded_store, toilet_service: ToiletService, clock
) -> None:
    await toilet_service.fetch_all()
    clock.advance(2 * HOUR_MS)
    seeded_store.fail = StoreErrorCode.UNAVAILABLE

    result = await toilet_service.fetch_all()
    assert result.source is DataSource.cache
    assert len(result.toilets) == 4


async def test_fetch_all_network_failure_without_cache_raises(store, toilet_service: ToiletService) -> None:
    store.fail = StoreErrorCode.UNAVAILABLE
    with pytest.raises(DataUnavailable):
        await toilet_service.fetch_all()


async def test_fetch_all_survives_broken_cache(seeded_store, toilet_service: ToiletService, kv) -> None:
    kv.fail = True
    result = await toilet_service.fetch_all()
    assert result.source is DataSource.network
    assert len(result.toilets) == 4


# ── fetch_by_id ───────────────────────────────────────────────────────────────

async def test_fetch_by_id_uses_any_cached_copy(seeded_store, toilet_service: ToiletService, clock) -> None:
    await toilet_service.fetch_all()
    clock.advance(5 * HOUR_MS)
    seeded_store.calls.clear()

    toilet = await toilet_service.fetch_by_id("mid")
    assert toilet is not None
    assert toilet.name == "Mid"
    assert seeded_store.calls == []


async def test_fetch_by_id_goes_remote_when_not_cached(seeded_store, toilet_service: ToiletService) -> None:
    toilet = await toilet_service.fetch_by_id("far")
    assert toilet is not None
    assert toilet.name == "Far"
    assert ("get", "toilets", "far") in seeded_store.calls


async def test_fetch_by_id_force_refresh(seeded_store, toilet_service: ToiletService) -> None:
    await toilet_service.fetch_all()
    seeded_store.collections["toilets"]["mid"]["name"] = "Renamed"
    toilet = await toilet_service.fetch_by_id("mid", force_refresh=True)
    assert toilet.name == "Renamed"


async def test_fetch_by_id_network_failure_falls_back_to_cache(
    seeded_store, toilet_service: ToiletService
) -> None:
    await toilet_service.fetch_all()
    seeded_store.fail = StoreErrorCode.UNAVAILABLE
    toilet = await toilet_service.fetch_by_id("near", force_refresh=True)
    assert toilet is not None
    assert toilet.id == "near"


async def test_fetch_by_id_not_found(seeded_store, toilet_service: ToiletService) -> None:
    assert await toilet_service.fetch_by_id("missing") is None
    seeded_store.fail = StoreErrorCode.UNAVAILABLE
    assert await toilet_service.fetch_by_id("missing") is None


# ── Nearby / map ──────────────────────────────────────────────────────────────

async def test_fetch_nearby_filters_and_sorts(seeded_store, toilet_service: ToiletService) -> None:
    toilets, source = await toilet_service.fetch_nearby(CENTER, 5)
    assert source is DataSource.network
    assert [t.id for t in toilets] == ["near", "near-twin", "mid"]
    assert all(t.distance <= 5000 for t in toilets)
    distances = [t.distance for t in toilets]
    assert distances == sorted(distances)
    assert 600 < toilets[0].distance < 800


async def test_fetch_nearby_ties_keep_fetch_order(seeded_store, toilet_service: ToiletService) -> None:
    toilets, _ = await toilet_service.fetch_nearby(CENTER, 1)
    assert [t.id for t in toilets] == ["near", "near-twin"]
    assert toilets[0].distance == toilets[1].distance


async def test_fetch_nearby_wider_radius(seeded_store, toilet_service: ToiletService) -> None:
    toilets, _ = await toilet_service.fetch_nearby(CENTER, 20)
    assert [t.id for t in toilets][-1] == "far"
    assert len(toilets) == 4


async def test_fetch_nearby_propagates_unavailable(store, toilet_service: ToiletService) -> None:
    store.fail = StoreErrorCode.UNAVAILABLE
    with pytest.raises(DataUnavailable):
        await toilet_service.fetch_nearby(CENTER)


async def test_fetch_all_for_map_has_zero_distance(seeded_store, toilet_service: ToiletService) -> None:
    toilets, source = await toilet_service.fetch_all_for_map()
    assert source is DataSource.network
    assert len(toilets) == 4
    assert {t.distance for t in toilets} == {0}


# ── apply_filters ─────────────────────────────────────────────────────────────

def test_apply_filters_is_free() -> None:
    records = [
        _with_distance("free", 100, is_free=True),
        _with_distance("paid", 100, is_free=False),
    ]
    assert [t.id for t in apply_filters(records, Filters(is_free=True))] == ["free"]


def test_apply_filters_false_flag_does_not_constrain() -> None:
    records = [_with_distance("free", 100, is_free=True), _with_distance("paid", 100)]
    assert len(apply_filters(records, Filters(is_free=False))) == 2


def test_apply_filters_missing_features_always_excluded() -> None:
    bare = ToiletWithDistance(id="bare", rating=5, distance=100)
    assert apply_filters([bare], Filters(is_free=True)) == []
    assert apply_filters([bare], Filters(min_rating=1)) == []
    assert apply_filters([bare], Filters()) == []


def test_apply_filters_combined_features() -> None:
    records = [
        _with_distance("all", 100, is_accessible=True, has_baby_changing=True, has_ablution=True),
        _with_distance("no-ablution", 100, is_accessible=True, has_baby_changing=True),
        _with_distance("none", 100),
    ]
    filters = Filters(is_accessible=True, has_baby_changing=True, has_ablution=True)
    assert [t.id for t in apply_filters(records, filters)] == ["all"]
    assert len(apply_filters(records, Filters(has_baby_changing=True))) == 2


def test_apply_filters_min_rating() -> None:
    records = [_with_distance("low", 100, rating=2.9), _with_distance("high", 100, rating=4.5)]
    assert [t.id for t in apply_filters(records, Filters(min_rating=3))] == ["high"]


def test_apply_filters_max_distance_skipped_without_origin() -> None:
    records = [
        _with_distance("close", 800),
        _with_distance("distant", 3500),
        _with_distance("map-view", 0),
    ]
    kept = [t.id for t in apply_filters(records, Filters(max_distance=1))]
    assert kept == ["close", "map-view"]


def test_apply_filters_accepts_plain_toilets() -> None:
    plain = Toilet(id="p", features=ToiletFeatures(is_free=True))
    assert apply_filters([plain], Filters(is_free=True, max_distance=1)) == [plain]


# ── Writes ────────────────────────────────────────────────────────────────────

async def test_record_rating_updates_remote_and_cache(
    seeded_store, toilet_service: ToiletService, toilet_cache, clock
) -> None:
    await toilet_service.fetch_all()
    clock.advance(1000)
    await toilet_service.record_rating("mid", 3.0, 2)

    remote = seeded_store.collections["toilets"]["mid"]
    assert remote["rating"] == 3.0
    assert remote["reviewCount"] == 2
    assert remote["lastUpdated"] == T0 + 1000

    cached = {t.id: t for t in await toilet_cache.get()}
    assert cached["mid"].rating == 3.0
    assert cached["mid"].review_count == 2
    assert cached["near"].rating == 3.5
    assert len(cached) == 4


async def test_record_rating_without_cache(seeded_store, toilet_service: ToiletService, toilet_cache) -> None:
    await toilet_service.record_rating("far", 5.0, 1)
    assert seeded_store.collections["toilets"]["far"]["rating"] == 5.0
    assert await toilet_cache.get() is None


async def test_record_rating_unknown_toilet(seeded_store, toilet_service: ToiletService) -> None:
    with pytest.raises(NotFound):
        await toilet_service.record_rating("ghost", 4.0, 1)


async def test_create_appends_to_existing_cache(
    seeded_store, toilet_service: ToiletService, toilet_cache
) -> None:
    await toilet_service.fetch_all()
    new = ToiletCreate(name="New", latitude=41.3, longitude=69.25, features=ToiletFeatures(is_free=True))
    toilet_id = await toilet_service.create(new)

    stored = seeded_store.collections["toilets"][toilet_id]
    assert stored["name"] == "New"
    assert stored["lastUpdated"] == T0
    assert stored["features"]["isFree"] is True

    cached = await toilet_cache.get()
    assert cached[-1].id == toilet_id
    assert cached[-1].features.is_free is True
    assert len(cached) == 5


async def test_create_without_cache_does_not_populate_it(
    store, toilet_service: ToiletService, toilet_cache
) -> None:
    await toilet_service.create(ToiletCreate(name="Solo", latitude=41.3, longitude=69.25))
    assert await toilet_cache.get() is None


# ── Malformed documents ───────────────────────────────────────────────────────

async def test_fetch_all_skips_malformed_document(seeded_store, toilet_service: ToiletService) -> None:
    seeded_store.seed("toilets", "broken", {"name": "Broken", "reviewCount": -1})
    result = await toilet_service.fetch_all()
    assert result.source is DataSource.network
    assert [t.id for t in result.toilets] == ["near", "mid", "far", "near-twin"]


async def test_fetch_nearby_survives_malformed_document(seeded_store, toilet_service: ToiletService) -> None:
    seeded_store.seed("toilets", "broken", {"name": "Broken", "latitude": "north"})
    toilets, _ = await toilet_service.fetch_nearby(CENTER, 5)
    assert [t.id for t in toilets] == ["near", "near-twin", "mid"]


async def test_fetch_by_id_malformed_document_is_none(seeded_store, toilet_service: ToiletService) -> None:
    seeded_store.seed("toilets", "broken", {"name": "Broken", "reviewCount": -1})
    assert await toilet_service.fetch_by_id("broken") is None
