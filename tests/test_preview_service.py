"""Tests for the get-or-generate preview flow."""

from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Error as PlaywrightError

from link_preview.errors import (
    CacheUnavailableError,
    GenerationError,
    NavigationError,
    ValidationError,
)
from link_preview.services.browser_session import BrowserSession
from link_preview.services.cache_keys import cache_key_for
from link_preview.services.preview_service import PreviewService

OG_PAGE = (
    "<html><head><title>Example Domain</title>"
    '<meta property="og:image" content="https://example.com/og.png">'
    '<link rel="icon" href="/favicon.ico">'
    "</head><body>This domain is for use in illustrative examples.</body></html>"
)

PLAIN_PAGE = "<html><head><title>Plain</title></head><body>Nothing to see</body></html>"


@pytest.fixture
def make_service(cache, test_settings, engine_factory, page_factory):
    """Build a PreviewService whose sessions render a mocked page."""
    engines = []

    def build(html=OG_PAGE, url="https://example.com/", **page_kwargs):
        def session_factory():
            engine = engine_factory(page_factory(html=html, url=url, **page_kwargs))
            engines.append(engine)
            return BrowserSession(test_settings, engine_factory=engine)

        service = PreviewService(cache, session_factory=session_factory, config=test_settings)
        return service, engines

    return build


class TestGetOrGenerate:
    @pytest.mark.asyncio
    async def test_schemeless_url_is_normalized(self, make_service):
        service, _ = make_service()
        result = await service.get_or_generate("example.com")
        assert result.url == "https://example.com/"
        assert result.record.url.startswith("https://example.com")

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, make_service, fake_redis):
        service, engines = make_service()

        first = await service.get_or_generate("https://example.com")
        second = await service.get_or_generate("https://example.com")

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.record == first.record
        assert len(engines) == 1
        assert cache_key_for("https://example.com/") in fake_redis.data

    @pytest.mark.asyncio
    async def test_hit_refreshes_ttl(self, make_service, fake_redis):
        service, _ = make_service()
        await service.get_or_generate("https://example.com")
        key = cache_key_for("https://example.com/")
        fake_redis.ttls[key] = 5

        await service.get_or_generate("https://example.com")

        assert fake_redis.ttls[key] == 86400

    @pytest.mark.asyncio
    async def test_refresh_failure_does_not_fail_hit(self, make_service, cache):
        service, _ = make_service()
        await service.get_or_generate("https://example.com")
        cache.refresh_ttl = AsyncMock(side_effect=CacheUnavailableError("Redis EXPIRE failed"))

        result = await service.get_or_generate("https://example.com")

        assert result.from_cache is True

    @pytest.mark.asyncio
    async def test_metadata_image_is_kept(self, make_service):
        service, engines = make_service()
        result = await service.get_or_generate("https://example.com")
        assert result.record.image == "https://example.com/og.png"
        assert result.record.is_screenshot is False
        engines[0].page.screenshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_screenshot_fallback_without_image_meta(self, make_service):
        service, engines = make_service(html=PLAIN_PAGE, screenshot=b"\x89PNG")
        result = await service.get_or_generate("https://example.com")

        assert result.record.is_screenshot is True
        assert result.record.image.startswith("data:image/png;base64,")
        assert len(result.record.image) > len("data:image/png;base64,")
        engines[0].assert_released()

    @pytest.mark.asyncio
    async def test_invalid_url_rejected_before_rendering(self, make_service):
        service, engines = make_service()
        with pytest.raises(ValidationError):
            await service.get_or_generate("")
        assert engines == []

    @pytest.mark.asyncio
    async def test_navigation_failure_is_not_cached(self, make_service, fake_redis):
        service, engines = make_service(goto_side_effect=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))

        with pytest.raises(NavigationError) as exc_info:
            await service.get_or_generate("https://nope.invalid")

        assert exc_info.value.error_type == "NAVIGATION_FAILED"
        assert fake_redis.data == {}
        engines[0].assert_released()

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_generation_error(self, make_service, fake_redis):
        service, engines = make_service()
        service.session_factory = _exploding_session_factory(service.session_factory)

        with pytest.raises(GenerationError):
            await service.get_or_generate("https://example.com")
        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_cache_outage_is_fatal(self, make_service, fake_redis):
        service, engines = make_service()
        fake_redis.down = True

        with pytest.raises(CacheUnavailableError):
            await service.get_or_generate("https://example.com")
        assert engines == []


class TestInvalidate:
    @pytest.mark.asyncio
    async def test_invalidate_clears_normalized_key(self, make_service, fake_redis):
        service, engines = make_service()
        await service.get_or_generate("example.com")

        key = await service.invalidate("EXAMPLE.com")

        assert key == cache_key_for("https://example.com/")
        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_invalidate_requires_url(self, make_service):
        service, _ = make_service()
        with pytest.raises(ValidationError):
            await service.invalidate(None)


def _exploding_session_factory(factory):
    def build():
        session = factory()
        session.extract = AsyncMock(side_effect=KeyError("unexpected"))
        return session
    return build
