"""
HojaTTop offline cache.

Every payload is wrapped in an envelope {data, timestamp, version} and stored
as JSON under a single key. An entry is valid while now - timestamp < TTL.
Failures of the underlying key-value store are logged and absorbed: a broken
cache behaves like an empty one, never like a crash.
"""
from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from app.core.clock import Clock, now_ms
from app.db.kv import KeyValueStore
from app.schemas.common import CacheEnvelope, CacheInfo, Coordinates
from app.schemas.review import Review
from app.schemas.toilet import Toilet

logger = logging.getLogger(__name__)

TOILETS_KEY       = "toilets_cache"
REVIEWS_KEY       = "reviews_cache"
LAST_UPDATE_KEY   = "last_update_timestamp"
USER_LOCATION_KEY = "user_location_cache"

CACHE_KEYS = (TOILETS_KEY, REVIEWS_KEY, LAST_UPDATE_KEY, USER_LOCATION_KEY)

DEFAULT_TTL_SECONDS = 60 * 60


# ── Generic envelope cache ────────────────────────────────────────────────────

class LocalCache:
    """
    Async TTL cache over a KeyValueStore.
    All methods are async; none of them raise.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        version: str = "1.0",
        clock: Clock = now_ms,
    ):
        self.store   = store
        self.ttl_ms  = ttl_seconds * 1000
        self.version = version
        self.clock   = clock

    async def _envelope(self, key: str) -> Optional[CacheEnvelope]:
        try:
            raw = await self.store.get(key)
            if raw is None:
                logger.debug("MISS %s", key)
                return None
            logger.debug("HIT  %s", key)
            return CacheEnvelope.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("undecodable cache entry %s — %s", key, exc)
            return None
        except Exception as exc:
            logger.warning("get %s failed — %s", key, exc)
            return None

    async def set(self, key: str, data: Any) -> None:
        envelope = {"data": data, "timestamp": self.clock(), "version": self.version}
        try:
            await self.store.set(key, json.dumps(envelope, ensure_ascii=False))
            logger.debug("SET  %s", key)
        except Exception as exc:
            logger.warning("set %s failed — %s", key, exc)

    async def get(self, key: str) -> Optional[Any]:
        envelope = await self._envelope(key)
        return envelope.data if envelope is not None else None

    async def is_valid(self, key: str) -> bool:
        envelope = await self._envelope(key)
        if envelope is None:
            return False
        return self.clock() - envelope.timestamp < self.ttl_ms

    async def timestamp(self, key: str) -> Optional[int]:
        envelope = await self._envelope(key)
        return envelope.timestamp if envelope is not None else None

    async def clear(self, key: str) -> None:
        try:
            await self.store.remove(key)
            logger.info("Cleared %s", key)
        except Exception as exc:
            logger.warning("clear %s failed — %s", key, exc)

    async def clear_all(self) -> None:
        try:
            await self.store.remove_many(CACHE_KEYS)
            logger.info("Cleared all cache keys")
        except Exception as exc:
            logger.warning("clear_all failed — %s", exc)

    async def info(self) -> CacheInfo:
        toilets = await self.get(TOILETS_KEY)
        reviews = await self.get(REVIEWS_KEY)
        return CacheInfo(
            toilets_count=len(toilets) if isinstance(toilets, list) else 0,
            reviews_count=len(reviews) if isinstance(reviews, list) else 0,
            last_update=await self.timestamp(TOILETS_KEY),
            is_valid=await self.is_valid(TOILETS_KEY),
        )

    async def remember_location(self, position: Coordinates) -> None:
        await self.set(USER_LOCATION_KEY, position.model_dump())

    async def last_location(self) -> Optional[Coordinates]:
        data = await self.get(USER_LOCATION_KEY)
        if data is None:
            return None
        try:
            return Coordinates.model_validate(data)
        except ValidationError:
            return None


def _parse_list(model, items: Any, key: str) -> Optional[list]:
    if not isinstance(items, list):
        return None
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as exc:
        logger.warning("discarding malformed %s — %s", key, exc)
        return None


# ── Specialised views ─────────────────────────────────────────────────────────

class ToiletCache:
    """Whole toilet collection under one key; writes replace the list."""

    def __init__(self, cache: LocalCache):
        self.cache = cache

    async def put(self, toilets: List[Toilet]) -> None:
        await self.cache.set(TOILETS_KEY, [t.to_doc() for t in toilets])

    async def get(self) -> Optional[List[Toilet]]:
        return _parse_list(Toilet, await self.cache.get(TOILETS_KEY), TOILETS_KEY)

    async def is_valid(self) -> bool:
        return await self.cache.is_valid(TOILETS_KEY)

    async def timestamp(self) -> Optional[int]:
        return await self.cache.timestamp(TOILETS_KEY)


class ReviewCache:
    """
    Reviews of every toilet under one key.
    Per-toilet reads filter the whole list; every write rewrites it.
    """

    def __init__(self, cache: LocalCache):
        self.cache = cache

    async def put(self, reviews: List[Review]) -> None:
        await self.cache.set(REVIEWS_KEY, [r.to_doc() for r in reviews])

    async def get(self) -> Optional[List[Review]]:
        return _parse_list(Review, await self.cache.get(REVIEWS_KEY), REVIEWS_KEY)

    async def for_toilet(self, toilet_id: str) -> List[Review]:
        return [r for r in (await self.get() or []) if r.toilet_id == toilet_id]

    async def add(self, review: Review) -> None:
        reviews = await self.get() or []
        await self.put([*reviews, review])

    async def replace_for_toilet(self, toilet_id: str, reviews: List[Review]) -> None:
        others = [r for r in (await self.get() or []) if r.toilet_id != toilet_id]
        await self.put([*others, *reviews])
