from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field

from app.schemas.common import CamelModel, DataSource

MAX_COMMENT_LENGTH = 500


class FeatureMentions(CamelModel):
    accessibility: bool = False
    baby_changing: bool = False
    ablution: bool = False
    is_paid: bool = False


class ReviewCreate(CamelModel):
    toilet_id: str
    user_id: str = "anonymous"
    user_name: str = "Анонимный пользователь"
    rating: float = Field(..., ge=1, le=5)
    cleanliness: float = Field(0, ge=0, le=5)
    accessibility: float = Field(0, ge=0, le=5)
    comment: str = Field("", max_length=MAX_COMMENT_LENGTH)
    photos: List[str] = []
    feature_mentions: Optional[FeatureMentions] = None


class Review(CamelModel):
    id: str
    toilet_id: str
    user_id: str = "anonymous"
    user_name: str = "Анонимный пользователь"
    rating: float = 0
    cleanliness: float = 0
    accessibility: float = 0
    comment: str = ""
    photos: List[str] = []
    created_at: int = 0
    feature_mentions: Optional[FeatureMentions] = None


class ReviewsResult(CamelModel):
    reviews: List[Review]
    source: DataSource


class AddReviewResult(CamelModel):
    success: bool
    review_id: str = ""


class FeatureCounts(CamelModel):
    accessibility_count: int = 0
    baby_changing_count: int = 0
    ablution_count: int = 0
    paid_count: int = 0
    free_count: int = 0


def _empty_distribution() -> Dict[int, int]:
    return {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}


class ReviewStats(CamelModel):
    average_rating: float = 0
    total_reviews: int = 0
    rating_distribution: Dict[int, int] = Field(default_factory=_empty_distribution)
    average_cleanliness: float = 0
    average_accessibility: float = 0


class ValidationResult(CamelModel):
    is_valid: bool
    errors: List[str] = []
