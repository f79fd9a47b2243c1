from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from app.core.config import settings
from app.core.deps import get_review_service
from app.core.errors import DataUnavailable
from app.schemas.review import (
    AddReviewResult,
    FeatureCounts,
    ReviewCreate,
    ReviewsResult,
    ReviewStats,
)
from app.services.reviews import ReviewService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["reviews"])


@router.get("/toilets/{toilet_id}/reviews", response_model=ReviewsResult)
async def list_reviews(
    toilet_id: str,
    refresh: bool = False,
    service: ReviewService = Depends(get_review_service),
):
    return await service.fetch_for_toilet(toilet_id, force_refresh=refresh)


@router.get("/toilets/{toilet_id}/reviews/stats", response_model=ReviewStats)
async def review_stats(
    toilet_id: str,
    service: ReviewService = Depends(get_review_service),
):
    return await service.statistics(toilet_id)


@router.get("/toilets/{toilet_id}/features", response_model=FeatureCounts)
async def feature_counts(
    toilet_id: str,
    service: ReviewService = Depends(get_review_service),
):
    return await service.feature_counts(toilet_id)


@router.get("/reviews/recent", response_model=ReviewsResult)
async def recent_reviews(
    limit: int = Query(settings.RECENT_REVIEWS_LIMIT, ge=1, le=100),
    refresh: bool = False,
    service: ReviewService = Depends(get_review_service),
):
    try:
        return await service.recent(limit=limit, force_refresh=refresh)
    except DataUnavailable as exc:
        logger.warning("recent reviews unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="Reviews are unavailable right now.")


@router.post("/reviews", response_model=AddReviewResult, status_code=status.HTTP_201_CREATED)
async def add_review(
    payload: Dict[str, Any] = Body(...),
    service: ReviewService = Depends(get_review_service),
):
    check = service.validate(payload)
    if not check.is_valid:
        raise HTTPException(
            status_code=422,
            detail=check.errors,
        )

    result = await service.add(ReviewCreate.model_validate(payload))
    if not result.success:
        raise HTTPException(status_code=502, detail="Review was not saved, please retry.")
    return result
