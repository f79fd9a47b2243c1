from fastapi import APIRouter, Depends, status

from app.core.deps import get_cache
from app.schemas.common import CacheInfo
from app.services.cache import LocalCache

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/info", response_model=CacheInfo)
async def cache_info(cache: LocalCache = Depends(get_cache)):
    return await cache.info()


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(cache: LocalCache = Depends(get_cache)):
    await cache.clear_all()
