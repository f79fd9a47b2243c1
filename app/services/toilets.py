"""
Toilet data access.

Cache-first: a valid cached list is served as-is, otherwise the collection is
scanned over the network and written through to the cache. When the network
fails a stale cached list is better than nothing; with no cache at all the
failure propagates as DataUnavailable.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from app.core.clock import Clock, now_ms
from app.core.errors import DataUnavailable, NetworkFailure, NotFound
from app.db.documents import DocumentStore, StoredDocument
from app.schemas.common import Coordinates, DataSource
from app.schemas.toilet import (
    Filters,
    Toilet,
    ToiletCreate,
    ToiletFeatures,
    ToiletsResult,
    ToiletWithDistance,
)
from app.services.cache import ToiletCache
from app.services.geo import distance_km

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Неизвестно"


def normalize_toilet(doc: StoredDocument, now: int) -> Toilet:
    """Fill every field a stored document may lack with its empty default."""
    data = doc.data
    raw_features: Dict[str, Any] = data.get("features") or {}
    return Toilet(
        id=doc.id,
        name=data.get("name") or UNKNOWN_NAME,
        address=data.get("address") or "",
        latitude=data.get("latitude") or 0,
        longitude=data.get("longitude") or 0,
        rating=data.get("rating") or 0,
        review_count=data.get("reviewCount") or 0,
        features=ToiletFeatures(
            is_accessible=bool(raw_features.get("isAccessible")),
            has_baby_changing=bool(raw_features.get("hasBabyChanging")),
            has_ablution=bool(raw_features.get("hasAblution")),
            is_free=bool(raw_features.get("isFree")),
        ),
        open_hours=data.get("openHours") or "",
        photos=list(data.get("photos") or []),
        last_updated=data.get("lastUpdated") or now,
    )


def normalize_many(docs: Sequence[StoredDocument], now: int) -> List[Toilet]:
    """Normalise a scan, dropping documents that still break the schema."""
    toilets: List[Toilet] = []
    for doc in docs:
        try:
            toilets.append(normalize_toilet(doc, now))
        except ValidationError as exc:
            logger.warning("skipping malformed toilet %s — %d errors", doc.id, exc.error_count())
    return toilets


def _coordinates(toilet: Toilet) -> Coordinates:
    return Coordinates(latitude=toilet.latitude, longitude=toilet.longitude)


def apply_filters(
    toilets: Sequence[ToiletWithDistance],
    filters: Filters,
) -> List[ToiletWithDistance]:
    """
    Boolean filters only constrain when set to True. ``max_distance`` (km) is
    skipped for records with distance 0, i.e. the origin-less map view.
    A record without a features object never passes.
    """
    def keep(t: ToiletWithDistance) -> bool:
        f = t.features
        if f is None:
            return False
        if filters.is_accessible and not f.is_accessible:
            return False
        if filters.has_baby_changing and not f.has_baby_changing:
            return False
        if filters.has_ablution and not f.has_ablution:
            return False
        if filters.is_free and not f.is_free:
            return False
        if filters.min_rating and t.rating < filters.min_rating:
            return False
        distance = getattr(t, "distance", 0)
        if filters.max_distance and distance > 0 and distance > filters.max_distance * 1000:
            return False
        return True

    return [t for t in toilets if keep(t)]


class ToiletService:
    def __init__(
        self,
        store: DocumentStore,
        cache: ToiletCache,
        collection: str = "toilets",
        clock: Clock = now_ms,
    ):
        self.store      = store
        self.cache      = cache
        self.collection = collection
        self.clock      = clock

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def fetch_all(self, force_refresh: bool = False) -> ToiletsResult:
        if not force_refresh and await self.cache.is_valid():
            cached = await self.cache.get()
            if cached is not None:
                logger.info("toilets from cache (%d)", len(cached))
                return ToiletsResult(toilets=cached, source=DataSource.cache)

        try:
            docs = await self.store.scan(self.collection)
        except NetworkFailure as exc:
            cached = await self.cache.get()
            if cached is not None:
                logger.warning("toilet fetch failed, serving stale cache — %s", exc)
                return ToiletsResult(toilets=cached, source=DataSource.cache)
            raise DataUnavailable(f"toilets unavailable: {exc}") from exc

        now = self.clock()
        toilets = normalize_many(docs, now)
        await self.cache.put(toilets)
        logger.info("toilets from network (%d)", len(toilets))
        return ToiletsResult(toilets=toilets, source=DataSource.network)

    async def _find_cached(self, toilet_id: str) -> Optional[Toilet]:
        for toilet in await self.cache.get() or []:
            if toilet.id == toilet_id:
                return toilet
        return None

    async def fetch_by_id(self, toilet_id: str, force_refresh: bool = False) -> Optional[Toilet]:
        # Any cached copy will do here, fresh or not.
        if not force_refresh:
            cached = await self._find_cached(toilet_id)
            if cached is not None:
                return cached

        try:
            doc = await self.store.get(self.collection, toilet_id)
        except NetworkFailure as exc:
            logger.warning("toilet %s fetch failed, scanning cache — %s", toilet_id, exc)
            return await self._find_cached(toilet_id)

        if doc is None:
            return None
        try:
            return normalize_toilet(doc, self.clock())
        except ValidationError as exc:
            logger.warning("toilet %s is malformed — %d errors", toilet_id, exc.error_count())
            return None

    async def fetch_nearby(
        self,
        origin: Coordinates,
        max_distance_km: float = 5.0,
        force_refresh: bool = False,
    ) -> tuple[List[ToiletWithDistance], DataSource]:
        result = await self.fetch_all(force_refresh)
        limit_m = max_distance_km * 1000

        with_distance = [
            ToiletWithDistance(
                **t.model_dump(),
                distance=distance_km(origin, _coordinates(t)) * 1000,
            )
            for t in result.toilets
        ]
        nearby = [t for t in with_distance if t.distance <= limit_m]
        # sorted() is stable: equal distances keep fetch order
        nearby = sorted(nearby, key=lambda t: t.distance)

        logger.info(
            "nearby: %d → %d toilets within %.1fkm",
            len(with_distance), len(nearby), max_distance_km,
        )
        return nearby, result.source

    async def fetch_all_for_map(
        self,
        force_refresh: bool = False,
    ) -> tuple[List[ToiletWithDistance], DataSource]:
        result = await self.fetch_all(force_refresh)
        return (
            [ToiletWithDistance(**t.model_dump(), distance=0) for t in result.toilets],
            result.source,
        )

    # ── Writes ────────────────────────────────────────────────────────────────

    async def record_rating(self, toilet_id: str, rating: float, count: int) -> None:
        now = self.clock()
        matched = await self.store.update(
            self.collection,
            toilet_id,
            {"rating": rating, "reviewCount": count, "lastUpdated": now},
        )
        if not matched:
            raise NotFound(self.collection, toilet_id)

        cached = await self.cache.get()
        if cached is None:
            return
        patched = [
            t.model_copy(update={"rating": rating, "review_count": count, "last_updated": now})
            if t.id == toilet_id else t
            for t in cached
        ]
        await self.cache.put(patched)

    async def create(self, toilet: ToiletCreate) -> str:
        now = self.clock()
        data = {**toilet.to_doc(), "lastUpdated": now}
        toilet_id = await self.store.insert(self.collection, data)
        logger.info("created toilet %s (%s)", toilet_id, toilet.name)

        cached = await self.cache.get()
        if cached is not None:
            created = Toilet(id=toilet_id, last_updated=now, **toilet.model_dump())
            await self.cache.put([*cached, created])
        return toilet_id
