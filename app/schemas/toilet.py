from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from app.schemas.common import CamelModel, DataSource


class ToiletFeatures(CamelModel):
    is_accessible: bool = False
    has_baby_changing: bool = False
    has_ablution: bool = False
    is_free: bool = False


class ToiletCreate(CamelModel):
    name: str
    address: str = ""
    latitude: float
    longitude: float
    rating: float = Field(0.0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    features: ToiletFeatures = Field(default_factory=ToiletFeatures)
    open_hours: str = ""
    photos: List[str] = []


class Toilet(CamelModel):
    id: str
    name: str = ""
    address: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    rating: float = 0.0
    review_count: int = Field(0, ge=0)
    # None only for stale cache entries written without a features object
    features: Optional[ToiletFeatures] = None
    open_hours: str = ""
    photos: List[str] = []
    last_updated: int = 0


class ToiletWithDistance(Toilet):
    distance: float = 0.0   # meters from the query origin


class Filters(CamelModel):
    is_accessible: Optional[bool] = None
    has_baby_changing: Optional[bool] = None
    has_ablution: Optional[bool] = None
    is_free: Optional[bool] = None
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    max_distance: Optional[float] = Field(None, ge=0)   # kilometers


class ToiletsResult(CamelModel):
    toilets: List[Toilet]
    source: DataSource


class NearbyToiletsResult(CamelModel):
    count: int
    source: DataSource
    toilets: List[ToiletWithDistance]


class ToiletCreated(CamelModel):
    id: str
