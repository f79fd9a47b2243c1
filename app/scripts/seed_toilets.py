"""
Seed the document store with sample Tashkent toilets and a couple of reviews
for the first few of them.

    python -m app.scripts.seed_toilets            # insert, skipping existing names
    python -m app.scripts.seed_toilets --dry-run  # only print what would happen
"""
import argparse
import asyncio
import logging
from typing import List

from app.core.clock import now_ms
from app.core.config import settings
from app.db.documents import DocumentStore, MongoDocumentStore
from app.schemas.review import ReviewCreate
from app.schemas.toilet import ToiletCreate, ToiletFeatures

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

# ── Sample data ───────────────────────────────────────────────────────────────


def _toilet(name, address, lat, lng, rating, count, hours, accessible, baby, ablution, free):
    return ToiletCreate(
        name=name,
        address=address,
        latitude=lat,
        longitude=lng,
        rating=rating,
        review_count=count,
        open_hours=hours,
        features=ToiletFeatures(
            is_accessible=accessible,
            has_baby_changing=baby,
            has_ablution=ablution,
            is_free=free,
        ),
    )


SAMPLE_TOILETS: List[ToiletCreate] = [
    _toilet('Кафе "Пончик"', "ул. Амира Темура, 41", 41.311081, 69.279737, 4.5, 23, "08:00 - 22:00", True, True, False, False),
    _toilet('ТЦ "Самарканд Дарваза"', "ул. Коратош, 5А", 41.320749, 69.254433, 3.8, 45, "09:00 - 21:00", True, False, True, True),
    _toilet("Chorsu Bazaar", "Chorsu Metro Station", 41.326936, 69.227734, 3.2, 67, "07:00 - 19:00", False, False, True, False),
    _toilet("Tashkent City Mall", "ул. Ислама Каримова, 2", 41.295021, 69.268540, 4.7, 89, "10:00 - 22:00", True, True, False, True),
    _toilet("АЗС Uzbekneftegaz", "ул. Бобура, 45", 41.305764, 69.241852, 3.5, 12, "24/7", True, False, False, True),
    _toilet("Парк Алишера Навои", "ул. Алмазар", 41.318524, 69.287651, 2.9, 34, "06:00 - 23:00", False, False, False, True),
    _toilet("Мечеть Минор", "ул. Зарафшан, 12", 41.308547, 69.265891, 4.9, 156, "05:00 - 22:00", True, False, True, True),
    _toilet('Ресторан "Плов Центр"', "ул. Ифтихор, 1", 41.299874, 69.272541, 4.1, 78, "11:00 - 23:00", True, True, True, False),
    _toilet("Hilton Tashkent City", "ул. Ислама Каримова, 2A", 41.294521, 69.269147, 4.8, 92, "24/7", True, True, False, False),
    _toilet("Mega Planet", "ул. Юнусабад, 41", 41.365214, 69.285749, 4.3, 124, "10:00 - 22:00", True, True, False, True),
]

SAMPLE_REVIEWS = [
    # (days ago, rating, cleanliness, accessibility, comment)
    (1, 4, 4, 5, "Чисто и удобно. Есть все необходимое."),
    (2, 3, 2, 4, "Немного грязновато, но в целом терпимо."),
]

REVIEWED_TOILETS = 3


# ── Runner ────────────────────────────────────────────────────────────────────

async def seed(store: DocumentStore, dry_run: bool = False) -> dict:
    """Insert sample toilets (skipping names already present) and reviews."""
    existing = {
        doc.data.get("name")
        for doc in await store.scan(settings.TOILETS_COLLECTION)
    }
    now = now_ms()
    imported = skipped = reviews = 0
    toilet_ids: List[str] = []

    for toilet in SAMPLE_TOILETS:
        if toilet.name in existing:
            logger.info("already exists: %s", toilet.name)
            skipped += 1
            continue
        if dry_run:
            logger.info("would insert: %s", toilet.name)
            imported += 1
            continue
        toilet_id = await store.insert(
            settings.TOILETS_COLLECTION,
            {**toilet.to_doc(), "lastUpdated": now},
        )
        toilet_ids.append(toilet_id)
        imported += 1
        logger.info("inserted %s → %s", toilet.name, toilet_id)

    for toilet_id in toilet_ids[:REVIEWED_TOILETS]:
        for days_ago, rating, cleanliness, accessibility, comment in SAMPLE_REVIEWS:
            review = ReviewCreate(
                toilet_id=toilet_id,
                user_id=f"anonymous{days_ago}",
                rating=rating,
                cleanliness=cleanliness,
                accessibility=accessibility,
                comment=comment,
            )
            await store.insert(
                settings.REVIEWS_COLLECTION,
                {**review.to_doc(), "createdAt": now - days_ago * DAY_MS},
            )
            reviews += 1

    return {"imported": imported, "skipped": skipped, "reviews": reviews}


async def run(dry_run: bool) -> None:
    store = MongoDocumentStore.from_uri(settings.MONGO_URI, settings.MONGO_DB)
    try:
        summary = await seed(store, dry_run=dry_run)
    finally:
        store.close()

    print(f"\n{'='*50}")
    print(f"✅ Imported:  {summary['imported']}")
    print(f"⏭  Skipped:   {summary['skipped']}")
    print(f"📝 Reviews:   {summary['reviews']}")
    print(f"{'='*50}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=settings.LOG_LEVEL)
    asyncio.run(run(args.dry_run))
