"""
Preview Service.

Get-or-generate flow for a single URL: normalize, look up the cache,
refresh the sliding TTL on a hit, or render a fresh preview in a
dedicated browser session on a miss and cache it.

Concurrent misses for the same URL each render independently and the
last write wins; there is no per-key coordination.
"""

import logging
import time
from typing import Callable, Optional

from ..config import Settings, settings
from ..errors import CacheUnavailableError, GenerationError, PreviewError
from ..models import PreviewRecord, PreviewResult
from .browser_session import BrowserSession
from .cache_keys import cache_key_for
from .cache_manager import CacheManager, cache_manager
from .metadata_extractor import with_screenshot
from .url_normalizer import normalize_url

logger = logging.getLogger("link_preview.preview_service")


class PreviewService:
    """
    Ties the cache and browser sessions together.

    Attributes:
        cache: CacheManager holding rendered previews
        session_factory: Callable returning a fresh BrowserSession per render
    """

    def __init__(
        self,
        cache: CacheManager,
        session_factory: Optional[Callable[[], BrowserSession]] = None,
        config: Optional[Settings] = None,
    ):
        self.cache = cache
        self.config = config or settings
        self.session_factory = session_factory or (lambda: BrowserSession(self.config))

    def key_for(self, url: str) -> str:
        return cache_key_for(url, self.config.cache_key_prefix)

    async def get_or_generate(self, raw_url: Optional[str]) -> PreviewResult:
        """
        Return the preview for a URL, rendering it only on a cache miss.

        Args:
            raw_url: URL as supplied by the client

        Returns:
            PreviewResult with the record and whether it came from cache

        Raises:
            ValidationError: If the URL is missing or malformed
            CacheUnavailableError: If the cache cannot be read or written
            NavigationError, LaunchError, GenerationError: If rendering fails
        """
        url = normalize_url(raw_url)
        key = self.key_for(url)

        cached = await self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache found for URL: {url}")
            await self._refresh_ttl(key)
            return PreviewResult(url=url, record=cached, from_cache=True)

        logger.info(f"Cache miss for URL: {url}")
        record = await self.generate(url)
        await self.cache.put(key, record, self.cache.default_ttl)
        logger.info(f"Preview data cached with key: {key}")
        return PreviewResult(url=url, record=record, from_cache=False)

    async def _refresh_ttl(self, key: str) -> None:
        # The hit is served even if the expiry could not be extended
        try:
            await self.cache.refresh_ttl(key, self.cache.default_ttl)
        except CacheUnavailableError as e:
            logger.warning(f"Failed to refresh TTL for {key}: {e}")

    async def generate(self, url: str) -> PreviewRecord:
        """
        Render ``url`` in a fresh browser session and extract its preview.

        Falls back to a viewport screenshot when the page declares no image.
        The session is closed on every path.

        Raises:
            LaunchError, NavigationError, GenerationError
        """
        start_time = time.time()
        logger.info(f"Generating preview for URL: {url}")

        try:
            async with self.session_factory() as session:
                await session.navigate(url)
                record = await session.extract()

                if not record.image:
                    logger.info("No image found in metadata. Capturing screenshot...")
                    record = with_screenshot(record, await session.screenshot())
                else:
                    logger.debug(f"Using found image: {record.image}")
        except PreviewError as e:
            logger.error(f"Preview generation error for {url}: {e}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error generating preview for {url}")
            raise GenerationError(f"Failed to generate preview for {url}: {e}") from e

        render_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Preview generated for {url} in {render_time_ms}ms")
        return record

    async def invalidate(self, raw_url: Optional[str]) -> str:
        """
        Drop the cached preview for a URL.

        Returns:
            The cache key that was cleared
        """
        url = normalize_url(raw_url)
        key = self.key_for(url)
        await self.cache.delete(key)
        logger.info(f"Cache cleared for URL: {url}")
        return key


# Singleton instance
preview_service = PreviewService(cache_manager)
