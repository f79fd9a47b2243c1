from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire and in the cache."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_doc(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class DataSource(str, enum.Enum):
    network = "network"
    cache = "cache"
    none = "none"


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class MapRegion(CamelModel):
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


class CacheEnvelope(BaseModel):
    data: Any
    timestamp: int
    version: str = "1.0"


class CacheInfo(CamelModel):
    toilets_count: int = 0
    reviews_count: int = 0
    last_update: int | None = None
    is_valid: bool = False
