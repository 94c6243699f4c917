"""
Preview Router - Single and batch preview endpoints.
"""

import logging
from typing import List

from fastapi import APIRouter, Response

from ....models import BatchPreviewRequest, BatchResult, PreviewRecord, PreviewRequest
from ....services.batch_service import batch_service
from ....services.preview_service import preview_service

logger = logging.getLogger("link_preview.api.preview")

router = APIRouter(tags=["preview"])


@router.post("/preview", response_model=PreviewRecord)
async def create_preview(request: PreviewRequest, response: Response) -> PreviewRecord:
    """
    Return link-preview metadata for one URL.

    Served from cache when possible (``X-Cache: HIT``); otherwise the page is
    rendered, extracted and cached (``X-Cache: MISS``). Errors are rendered
    by the application's exception handlers.
    """
    logger.info(f"Received /preview request for URL: {request.url}")
    result = await preview_service.get_or_generate(request.url)
    response.headers["X-Cache"] = "HIT" if result.from_cache else "MISS"
    return result.record


@router.post("/previews", response_model=List[BatchResult])
async def create_previews(request: BatchPreviewRequest) -> List[BatchResult]:
    """
    Return previews for up to 10 URLs, processed sequentially.

    Each entry is either ``{url, data, fromCache}`` or
    ``{url, error, details, type}``; one failing URL does not fail the batch.
    """
    logger.info(f"Received /previews request for URLs: {request.urls}")
    return await batch_service.run(request.urls)
