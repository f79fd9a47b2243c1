"""
Review data access, rating aggregation and review statistics.

Reads are cache-first per toilet. Unlike toilets, a review read never raises:
with neither network nor cache it resolves to an empty list tagged
``DataSource.none`` so the detail screen can still render.
"""
from __future__ import annotations

import logging
from math import floor
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from pydantic import ValidationError

from app.core.clock import Clock, now_ms
from app.core.errors import (
    DataUnavailable,
    NetworkFailure,
    NotFound,
    StoreError,
    StoreErrorCode,
)
from app.db.documents import DocumentStore, StoredDocument
from app.schemas.common import DataSource
from app.schemas.review import (
    MAX_COMMENT_LENGTH,
    AddReviewResult,
    FeatureCounts,
    FeatureMentions,
    Review,
    ReviewCreate,
    ReviewsResult,
    ReviewStats,
    ValidationResult,
)
from app.services.cache import ReviewCache
from app.services.toilets import ToiletService

logger = logging.getLogger(__name__)

ANONYMOUS_ID   = "anonymous"
ANONYMOUS_NAME = "Анонимный пользователь"

ERR_TOILET_ID     = "toiletId is required"
ERR_RATING        = "rating must be between 1 and 5"
ERR_CLEANLINESS   = "cleanliness must be between 1 and 5"
ERR_ACCESSIBILITY = "accessibility must be between 1 and 5"
ERR_COMMENT       = f"comment must not exceed {MAX_COMMENT_LENGTH} characters"


def round1(value: float) -> float:
    """Round half up to one decimal place."""
    return floor(value * 10 + 0.5) / 10


def _in_range(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 1 <= value <= 5


def _pick(draft: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if draft.get(name) is not None:
            return draft[name]
    return None


def _schema_errors(draft: Mapping[str, Any], flagged: Set[str]) -> List[str]:
    """Type errors from the create schema, minus fields a rule already reported."""
    try:
        # null counts as absent, as in the rules above
        ReviewCreate.model_validate({k: v for k, v in draft.items() if v is not None})
    except ValidationError as exc:
        errors = []
        for err in exc.errors():
            loc = err["loc"]
            if loc and loc[0] in flagged:
                continue
            field = ".".join(str(part) for part in loc) or "review"
            errors.append(f"{field}: {err['msg']}")
        return errors
    return []


def validate_review(draft: Mapping[str, Any]) -> ValidationResult:
    """Check a review draft, collecting every broken rule."""
    errors: List[str] = []
    flagged: Set[str] = set()

    if not _pick(draft, "toilet_id", "toiletId"):
        errors.append(ERR_TOILET_ID)
        flagged.add("toiletId")

    if not _in_range(draft.get("rating")):
        errors.append(ERR_RATING)
        flagged.add("rating")

    cleanliness = draft.get("cleanliness")
    if cleanliness is not None and not _in_range(cleanliness):
        errors.append(ERR_CLEANLINESS)
        flagged.add("cleanliness")

    accessibility = draft.get("accessibility")
    if accessibility is not None and not _in_range(accessibility):
        errors.append(ERR_ACCESSIBILITY)
        flagged.add("accessibility")

    comment = draft.get("comment")
    if comment is not None and len(str(comment)) > MAX_COMMENT_LENGTH:
        errors.append(ERR_COMMENT)
        flagged.add("comment")

    errors.extend(_schema_errors(draft, flagged))

    return ValidationResult(is_valid=not errors, errors=errors)


def normalize_review(doc: StoredDocument, now: int) -> Review:
    data = doc.data
    mentions: Optional[FeatureMentions] = None
    if data.get("featureMentions") is not None:
        try:
            mentions = FeatureMentions.model_validate(data["featureMentions"])
        except ValidationError:
            logger.warning("review %s has malformed featureMentions", doc.id)
    return Review(
        id=doc.id,
        toilet_id=data.get("toiletId") or "",
        user_id=data.get("userId") or ANONYMOUS_ID,
        user_name=data.get("userName") or ANONYMOUS_NAME,
        rating=data.get("rating") or 0,
        cleanliness=data.get("cleanliness") or 0,
        accessibility=data.get("accessibility") or 0,
        comment=data.get("comment") or "",
        photos=list(data.get("photos") or []),
        created_at=data.get("createdAt") or now,
        feature_mentions=mentions,
    )


def normalize_reviews(docs: Sequence[StoredDocument], now: int) -> List[Review]:
    reviews: List[Review] = []
    for doc in docs:
        try:
            reviews.append(normalize_review(doc, now))
        except ValidationError as exc:
            logger.warning("skipping malformed review %s — %d errors", doc.id, exc.error_count())
    return reviews


def _newest_first(reviews: List[Review]) -> List[Review]:
    return sorted(reviews, key=lambda r: r.created_at, reverse=True)


class ReviewService:
    def __init__(
        self,
        store: DocumentStore,
        cache: ReviewCache,
        toilets: ToiletService,
        collection: str = "reviews",
        clock: Clock = now_ms,
    ):
        self.store      = store
        self.cache      = cache
        self.toilets    = toilets
        self.collection = collection
        self.clock      = clock

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def _query_for_toilet(self, toilet_id: str) -> List[StoredDocument]:
        try:
            return await self.store.query(
                self.collection, "toiletId", toilet_id,
                order_by="createdAt", descending=True,
            )
        except StoreError as exc:
            if exc.code is not StoreErrorCode.INDEX_MISSING:
                raise
            logger.info("ordered review query needs an index, retrying unordered")
            return await self.store.query(self.collection, "toiletId", toilet_id)

    async def fetch_for_toilet(self, toilet_id: str, force_refresh: bool = False) -> ReviewsResult:
        if not force_refresh:
            cached = await self.cache.for_toilet(toilet_id)
            if cached:
                logger.info("reviews for %s from cache (%d)", toilet_id, len(cached))
                return ReviewsResult(reviews=cached, source=DataSource.cache)

        try:
            docs = await self._query_for_toilet(toilet_id)
        except NetworkFailure as exc:
            logger.warning("review fetch for %s failed — %s", toilet_id, exc)
            cached = await self.cache.for_toilet(toilet_id)
            if cached:
                return ReviewsResult(reviews=cached, source=DataSource.cache)
            return ReviewsResult(reviews=[], source=DataSource.none)

        now = self.clock()
        # Store-side ordering is not trusted; the unordered fallback has none.
        reviews = _newest_first(normalize_reviews(docs, now))
        await self.cache.replace_for_toilet(toilet_id, reviews)
        logger.info("reviews for %s from network (%d)", toilet_id, len(reviews))
        return ReviewsResult(reviews=reviews, source=DataSource.network)

    async def recent(self, limit: int = 10, force_refresh: bool = False) -> ReviewsResult:
        if not force_refresh:
            cached = await self.cache.get()
            if cached:
                return ReviewsResult(reviews=_newest_first(cached)[:limit], source=DataSource.cache)

        try:
            docs = await self.store.recent(self.collection, "createdAt", limit)
        except NetworkFailure as exc:
            cached = await self.cache.get()
            if cached:
                logger.warning("recent reviews failed, serving cache — %s", exc)
                return ReviewsResult(reviews=_newest_first(cached)[:limit], source=DataSource.cache)
            raise DataUnavailable(f"recent reviews unavailable: {exc}") from exc

        now = self.clock()
        return ReviewsResult(
            reviews=normalize_reviews(docs, now),
            source=DataSource.network,
        )

    # ── Writes ────────────────────────────────────────────────────────────────

    def validate(self, draft: Mapping[str, Any]) -> ValidationResult:
        return validate_review(draft)

    async def add(self, review: ReviewCreate) -> AddReviewResult:
        created_at = self.clock()
        data = {**review.to_doc(), "createdAt": created_at}
        try:
            review_id = await self.store.insert(self.collection, data)
        except NetworkFailure as exc:
            logger.warning("adding review for %s failed — %s", review.toilet_id, exc)
            return AddReviewResult(success=False)

        await self.cache.add(Review(id=review_id, created_at=created_at, **review.model_dump()))
        await self.recalculate_rating(review.toilet_id)
        logger.info("review %s added for toilet %s", review_id, review.toilet_id)
        return AddReviewResult(success=True, review_id=review_id)

    async def recalculate_rating(self, toilet_id: str) -> None:
        result = await self.fetch_for_toilet(toilet_id, force_refresh=True)
        reviews = result.reviews
        if not reviews:
            return

        average = round1(sum(r.rating for r in reviews) / len(reviews))
        try:
            await self.toilets.record_rating(toilet_id, average, len(reviews))
        except (NetworkFailure, NotFound) as exc:
            logger.warning("rating update for %s failed — %s", toilet_id, exc)
            return
        logger.info("toilet %s rating → %.1f (%d reviews)", toilet_id, average, len(reviews))

    # ── Aggregates ────────────────────────────────────────────────────────────

    async def feature_counts(self, toilet_id: str) -> FeatureCounts:
        result = await self.fetch_for_toilet(toilet_id)
        counts = FeatureCounts()
        for review in result.reviews:
            mentions = review.feature_mentions
            if mentions is None:
                continue
            if mentions.accessibility:
                counts.accessibility_count += 1
            if mentions.baby_changing:
                counts.baby_changing_count += 1
            if mentions.ablution:
                counts.ablution_count += 1
            if mentions.is_paid:
                counts.paid_count += 1
            else:
                counts.free_count += 1
        return counts

    async def statistics(self, toilet_id: str) -> ReviewStats:
        reviews = (await self.fetch_for_toilet(toilet_id)).reviews
        if not reviews:
            return ReviewStats()

        n = len(reviews)
        distribution: Dict[int, int] = {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
        for review in reviews:
            bucket = int(floor(review.rating + 0.5))
            if bucket in distribution:
                distribution[bucket] += 1

        return ReviewStats(
            average_rating=round1(sum(r.rating for r in reviews) / n),
            total_reviews=n,
            rating_distribution=distribution,
            average_cleanliness=round1(sum(r.cleanliness for r in reviews) / n),
            average_accessibility=round1(sum(r.accessibility for r in reviews) / n),
        )
