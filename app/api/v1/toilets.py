from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.config import settings
from app.core.deps import get_toilet_service
from app.core.errors import DataUnavailable, NetworkFailure
from app.schemas.common import Coordinates, MapRegion
from app.schemas.toilet import (
    Filters,
    NearbyToiletsResult,
    Toilet,
    ToiletCreate,
    ToiletCreated,
    ToiletsResult,
)
from app.services.geo import map_region
from app.services.toilets import ToiletService, apply_filters

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/toilets", tags=["toilets"])


def filter_params(
    is_accessible: Optional[bool] = None,
    has_baby_changing: Optional[bool] = None,
    has_ablution: Optional[bool] = None,
    is_free: Optional[bool] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    max_distance: Optional[float] = Query(None, ge=0, description="km"),
) -> Filters:
    return Filters(
        is_accessible=is_accessible,
        has_baby_changing=has_baby_changing,
        has_ablution=has_ablution,
        is_free=is_free,
        min_rating=min_rating,
        max_distance=max_distance,
    )


def _unavailable(exc: DataUnavailable) -> HTTPException:
    logger.warning("toilets unavailable: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Toilet data is unavailable and nothing is cached yet.",
    )


@router.get("", response_model=ToiletsResult)
async def list_toilets(
    refresh: bool = False,
    service: ToiletService = Depends(get_toilet_service),
):
    try:
        return await service.fetch_all(force_refresh=refresh)
    except DataUnavailable as exc:
        raise _unavailable(exc)


@router.get("/map", response_model=NearbyToiletsResult)
async def map_toilets(
    refresh: bool = False,
    filters: Filters = Depends(filter_params),
    service: ToiletService = Depends(get_toilet_service),
):
    try:
        toilets, source = await service.fetch_all_for_map(force_refresh=refresh)
    except DataUnavailable as exc:
        raise _unavailable(exc)
    toilets = apply_filters(toilets, filters)
    return NearbyToiletsResult(count=len(toilets), source=source, toilets=toilets)


@router.get("/nearby", response_model=NearbyToiletsResult)
async def nearby_toilets(
    lat: float = Query(settings.DEFAULT_LATITUDE, ge=-90, le=90),
    lng: float = Query(settings.DEFAULT_LONGITUDE, ge=-180, le=180),
    radius_km: float = Query(settings.DEFAULT_SEARCH_RADIUS_KM, gt=0, le=100),
    refresh: bool = False,
    filters: Filters = Depends(filter_params),
    service: ToiletService = Depends(get_toilet_service),
):
    origin = Coordinates(latitude=lat, longitude=lng)
    try:
        toilets, source = await service.fetch_nearby(origin, radius_km, force_refresh=refresh)
    except DataUnavailable as exc:
        raise _unavailable(exc)
    toilets = apply_filters(toilets, filters)
    return NearbyToiletsResult(count=len(toilets), source=source, toilets=toilets)


@router.get("/region", response_model=MapRegion)
async def region(
    lat: float = Query(settings.DEFAULT_LATITUDE, ge=-89, le=89),
    lng: float = Query(settings.DEFAULT_LONGITUDE, ge=-180, le=180),
    radius_km: float = Query(settings.DEFAULT_MAP_RADIUS_KM, gt=0),
):
    return map_region(Coordinates(latitude=lat, longitude=lng), radius_km)


@router.get("/{toilet_id}", response_model=Toilet)
async def get_toilet(
    toilet_id: str,
    refresh: bool = False,
    service: ToiletService = Depends(get_toilet_service),
):
    toilet = await service.fetch_by_id(toilet_id, force_refresh=refresh)
    if toilet is None:
        raise HTTPException(status_code=404, detail="Toilet not found")
    return toilet


@router.post("", response_model=ToiletCreated, status_code=status.HTTP_201_CREATED)
async def create_toilet(
    payload: ToiletCreate,
    service: ToiletService = Depends(get_toilet_service),
):
    try:
        toilet_id = await service.create(payload)
    except NetworkFailure as exc:
        logger.exception("Creating toilet failed: %s", exc)
        raise HTTPException(status_code=502, detail="Could not save the toilet, try again.")
    return ToiletCreated(id=toilet_id)
