from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.core.config import Settings
from app.db.documents import DocumentStore, MongoDocumentStore
from app.db.kv import KeyValueStore, RedisKeyValueStore
from app.services.cache import LocalCache, ReviewCache, ToiletCache
from app.services.reviews import ReviewService
from app.services.toilets import ToiletService


@dataclass
class Services:
    cache: LocalCache
    toilets: ToiletService
    reviews: ReviewService
    documents: Optional[DocumentStore] = None
    kv: Optional[KeyValueStore] = None


def build_services(
    cfg: Settings,
    documents: Optional[DocumentStore] = None,
    kv: Optional[KeyValueStore] = None,
) -> Services:
    """Wire clients into services. Pass ``documents``/``kv`` to substitute fakes."""
    if documents is None:
        documents = MongoDocumentStore.from_uri(cfg.MONGO_URI, cfg.MONGO_DB)
    if kv is None:
        kv = RedisKeyValueStore.from_url(cfg.REDIS_URL, namespace=cfg.CACHE_NAMESPACE)

    cache   = LocalCache(kv, ttl_seconds=cfg.CACHE_TTL_SECONDS, version=cfg.CACHE_VERSION)
    toilets = ToiletService(documents, ToiletCache(cache), collection=cfg.TOILETS_COLLECTION)
    reviews = ReviewService(
        documents,
        ReviewCache(cache),
        toilets,
        collection=cfg.REVIEWS_COLLECTION,
    )
    return Services(cache=cache, toilets=toilets, reviews=reviews, documents=documents, kv=kv)


# ── FastAPI dependencies ──────────────────────────────────────────────────────

def get_services(request: Request) -> Services:
    return request.app.state.services


def get_toilet_service(request: Request) -> ToiletService:
    return get_services(request).toilets


def get_review_service(request: Request) -> ReviewService:
    return get_services(request).reviews


def get_cache(request: Request) -> LocalCache:
    return get_services(request).cache
