"""
Device geolocation, as seen by the data core.

Only ``{latitude, longitude}`` pairs flow into the services; permission
prompts belong to whatever platform implements ``GeolocationProvider``.

The HTTP app never calls into this module: a server has no device to ask.
It is the client-side surface of the package, for callers that embed the
services next to a real location source and need ``resolve_origin`` to pick
the point ``ToiletService.fetch_nearby`` measures from.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from app.schemas.common import Coordinates
from app.services.cache import LocalCache
from app.services.geo import TASHKENT_CENTER

logger = logging.getLogger(__name__)

PositionCallback = Callable[[Coordinates], None]


class LocationWatch(ABC):
    @abstractmethod
    def stop(self) -> None: ...


class GeolocationProvider(ABC):
    @abstractmethod
    async def has_permission(self) -> bool: ...

    @abstractmethod
    async def services_enabled(self) -> bool: ...

    @abstractmethod
    async def current_position(self) -> Coordinates: ...

    @abstractmethod
    async def watch(
        self,
        callback: PositionCallback,
        distance_interval_m: float = 10,
        time_interval_ms: int = 5000,
    ) -> Optional[LocationWatch]:
        """Start continuous updates; None when permission is refused."""


async def resolve_origin(
    provider: GeolocationProvider,
    cache: Optional[LocalCache] = None,
    fallback: Coordinates = TASHKENT_CENTER,
) -> Optional[Coordinates]:
    """
    Best-effort user position.

    None when the user refused permission; the city centre when the
    provider is disabled or fails. A successful fix is remembered in ``cache`` and the
    last remembered fix is preferred over the city centre.
    """
    async def _fallback() -> Coordinates:
        if cache is not None:
            last = await cache.last_location()
            if last is not None:
                return last
        return fallback

    if not await provider.has_permission():
        return None

    if not await provider.services_enabled():
        logger.info("location services disabled, using fallback")
        return await _fallback()

    try:
        position = await provider.current_position()
    except Exception as exc:
        logger.warning("position unavailable, using fallback — %s", exc)
        return await _fallback()

    if cache is not None:
        await cache.remember_location(position)
    return position
