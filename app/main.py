import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import settings
from app.core.deps import build_services
from app.db.documents import MongoDocumentStore
from app.db.kv import RedisKeyValueStore
from app.api.v1.toilets import router as toilets_router
from app.api.v1.reviews import router as reviews_router
from app.api.v1.cache import router as cache_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests may install their own services before startup.
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)
    yield
    services = app.state.services
    if isinstance(services.documents, MongoDocumentStore):
        services.documents.close()
    if isinstance(services.kv, RedisKeyValueStore):
        await services.kv.close()


app = FastAPI(
    title="HojaTTop API",
    version="1.0.0",
    description="Public toilets of Tashkent: locations, filters, ratings and reviews.",
    lifespan=lifespan,
)

app.include_router(toilets_router, prefix="/api/v1")
app.include_router(reviews_router, prefix="/api/v1")
app.include_router(cache_router,   prefix="/api/v1")


@app.get("/health", tags=["meta"])
async def health_check():
    return {"status": "ok", "version": app.version}
