"""
Key-value store clients.

Namespaced keys: hojattop:{namespace}:{key}
Values are opaque strings; callers JSON-encode them.

Local dev:   redis://localhost:6379/0
Production:  set REDIS_URL in .env
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from redis.asyncio import ConnectionPool, Redis

logger = logging.getLogger(__name__)

# ── Single connection pool per URL ────────────────────────────────────────────
_pools: dict[str, ConnectionPool] = {}


def _get_pool(url: str) -> ConnectionPool:
    pool = _pools.get(url)
    if pool is None:
        pool = ConnectionPool.from_url(
            url,
            max_connections=20,
            decode_responses=True,
        )
        _pools[url] = pool
    return pool


class KeyValueStore(ABC):
    """String-keyed get / set / remove. Implementations may raise; callers absorb."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def remove(self, key: str) -> None: ...

    @abstractmethod
    async def remove_many(self, keys: Iterable[str]) -> None: ...


class RedisKeyValueStore(KeyValueStore):
    """No server-side expiry: TTL policy is owned by LocalCache's envelope."""

    def __init__(self, redis: Redis, namespace: str = "device"):
        self.redis = redis
        self.ns    = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "device") -> "RedisKeyValueStore":
        return cls(Redis(connection_pool=_get_pool(url)), namespace=namespace)

    def _key(self, key: str) -> str:
        return f"hojattop:{self.ns}:{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(self._key(key), value)

    async def remove(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def remove_many(self, keys: Iterable[str]) -> None:
        full = [self._key(k) for k in keys]
        if full:
            await self.redis.delete(*full)
        logger.debug("[%s] removed %d keys", self.ns, len(full))

    async def close(self) -> None:
        await self.redis.aclose()
