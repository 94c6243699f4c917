"""
Batch Preview Service.

Runs the preview flow over a short list of URLs one at a time so that at
most one browser process is alive per batch. Per-URL failures are turned
into result entries instead of failing the batch.
"""

import logging
from typing import List, Optional, Sequence, Union

from ..errors import PreviewError, ValidationError
from ..models import BatchPreviewFailure, BatchPreviewSuccess, BatchResult
from .preview_service import PreviewService, preview_service
from .url_normalizer import normalize_url

logger = logging.getLogger("link_preview.batch_service")


class BatchPreviewService:
    """Sequential batch wrapper around PreviewService."""

    def __init__(self, previews: PreviewService, max_urls: Optional[int] = None):
        self.previews = previews
        self._max_urls = max_urls

    @property
    def max_urls(self) -> int:
        return self._max_urls or self.previews.config.batch_max_urls

    def validate(self, urls: Union[None, str, Sequence[Optional[str]]]) -> List[Optional[str]]:
        """
        Check the batch shape and coerce a single URL to a list.

        Raises:
            ValidationError: If urls is missing, empty or too long
        """
        if urls is None:
            raise ValidationError("URLs are required")

        url_list = [urls] if isinstance(urls, str) else list(urls)
        if not url_list:
            raise ValidationError("No URLs provided for preview generation")
        if len(url_list) > self.max_urls:
            raise ValidationError(
                f"Too many URLs provided for preview generation, limit is {self.max_urls}"
            )
        return url_list

    async def run(self, urls: Union[None, str, Sequence[Optional[str]]]) -> List[BatchResult]:
        """
        Produce previews for every URL in order.

        Empty entries are skipped. Once the batch passes validation this
        never raises: each failure becomes a BatchPreviewFailure.
        """
        url_list = self.validate(urls)
        results: List[BatchResult] = []

        for raw_url in url_list:
            if not raw_url:
                logger.warning("Skipping empty URL")
                continue

            logger.info(f"Processing URL for preview: {raw_url}")
            results.append(await self._run_one(raw_url))

        return results

    async def _run_one(self, raw_url: str) -> BatchResult:
        try:
            url = normalize_url(raw_url)
        except ValidationError as e:
            logger.warning(f"Invalid URL provided: {raw_url} ({e})")
            return BatchPreviewFailure(
                url=raw_url,
                error="Invalid URL provided",
                details=str(e),
                type=e.error_type,
            )

        try:
            result = await self.previews.get_or_generate(url)
        except PreviewError as e:
            logger.error(f"Failed to generate preview for URL: {url} Error: {e}")
            return BatchPreviewFailure(
                url=url,
                error="Failed to generate preview",
                details=str(e),
                type=e.error_type,
            )
        except Exception as e:
            logger.exception(f"Unexpected error processing {url}")
            return BatchPreviewFailure(
                url=url,
                error="Failed to generate preview",
                details=str(e),
            )

        return BatchPreviewSuccess(url=result.url, data=result.record, from_cache=result.from_cache)


# Singleton instance
batch_service = BatchPreviewService(preview_service)
