"""
Cache Router - Administrative cache endpoints.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse

from ....errors import CacheUnavailableError
from ....models import CacheClearRequest, CacheClearResponse, CacheKeyEntry
from ....services.cache_manager import cache_manager
from ....services.preview_service import preview_service

logger = logging.getLogger("link_preview.api.cache")

router = APIRouter(tags=["cache"])


def _cache_failure(message: str, error: CacheUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": message, "details": str(error), "type": error.error_type},
    )


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(request: CacheClearRequest):
    """Evict the cached preview for one URL."""
    try:
        await preview_service.invalidate(request.url)
    except CacheUnavailableError as e:
        logger.error(f"Failed to clear cache for {request.url}: {e}")
        return _cache_failure("Failed to clear cache", e)
    return CacheClearResponse()


@router.get("/cache-stats", response_class=PlainTextResponse)
async def cache_stats():
    """Report the cache store's INFO output as plain text."""
    try:
        return PlainTextResponse(await cache_manager.info())
    except CacheUnavailableError as e:
        logger.error(f"Failed to fetch cache stats: {e}")
        return _cache_failure("Failed to fetch cache stats", e)


@router.get("/cache-keys")
async def cache_keys():
    """
    List every cached preview with its decoded URL.

    Entries whose stored value no longer parses are left out of the listing
    and logged.
    """
    try:
        listing = await cache_manager.list_by_prefix()
    except CacheUnavailableError as e:
        logger.error(f"Error fetching cache keys: {e}")
        return _cache_failure("Failed to fetch cache keys", e)

    if listing.invalid_keys:
        logger.warning(f"Skipped {len(listing.invalid_keys)} undecodable cache entries")
    if not listing.entries:
        return {"message": "No cache keys found"}

    return [
        CacheKeyEntry(key=entry.key, url=entry.url, value=entry.record).model_dump(by_alias=True)
        for entry in listing.entries
    ]
