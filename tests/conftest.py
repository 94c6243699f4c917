"""Pytest fixtures for the link preview service tests."""

import fnmatch
import os
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

# Keep tests from picking up a developer's Redis or slow retry pauses
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/15")
os.environ.setdefault("NAVIGATION_RETRY_DELAY_S", "0")

from link_preview.config import Settings  # noqa: E402
from link_preview.services.cache_manager import CacheManager  # noqa: E402


class FakeRedis:
    """
    In-memory stand-in for ``redis.asyncio.Redis``.

    Implements the handful of commands CacheManager issues. TTLs are
    recorded, not enforced; ``expire_now`` simulates natural expiry.
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.down = False
        self.closed = False

    def _check(self):
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def ping(self):
        self._check()
        return True

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def expire(self, key, seconds):
        self._check()
        if key not in self.data:
            return False
        self.ttls[key] = seconds
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def mget(self, keys):
        self._check()
        return [self.data.get(key) for key in keys]

    async def info(self):
        self._check()
        return {
            "redis_version": "7.2.4",
            "connected_clients": 1,
            "db0": {"keys": len(self.data), "expires": len(self.ttls)},
        }

    async def aclose(self):
        self.closed = True

    def expire_now(self, key):
        self.data.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        navigation_retry_delay_s=0,
        readiness_timeout_ms=100,
        cache_ttl_seconds=86400,
        cache_connect_timeout_s=0.2,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(test_settings, fake_redis) -> CacheManager:
    return CacheManager(test_settings, client=fake_redis)


# ============================================================================
# PLAYWRIGHT DOUBLES
# ============================================================================


def make_page(
    html: str = "<html><head><title>Example Domain</title></head><body>Hello</body></html>",
    url: str = "https://example.com/",
    goto_side_effect: Optional[List] = None,
    screenshot: bytes = b"\x89PNG fake",
) -> MagicMock:
    """Build a mocked Playwright page serving fixed HTML."""
    page = MagicMock()
    page.url = url
    page.goto = AsyncMock(side_effect=goto_side_effect)
    page.wait_for_function = AsyncMock(return_value=True)
    page.content = AsyncMock(return_value=html)
    page.screenshot = AsyncMock(return_value=screenshot)
    page.add_init_script = AsyncMock()
    return page


class FakeEngine:
    """
    Mocked ``async_playwright()`` object tree.

    Exposes the playwright driver, browser and context mocks so tests can
    assert that every one of them was released.
    """

    def __init__(self, page: MagicMock, launch_side_effect=None):
        self.page = page
        self.context = MagicMock()
        self.context.new_page = AsyncMock(return_value=page)
        self.context.close = AsyncMock()

        self.browser = MagicMock()
        self.browser.new_context = AsyncMock(return_value=self.context)
        self.browser.close = AsyncMock()

        self.playwright = MagicMock()
        self.playwright.chromium.launch = AsyncMock(
            return_value=self.browser,
            side_effect=launch_side_effect,
        )
        self.playwright.stop = AsyncMock()

    def __call__(self):
        manager = MagicMock()
        manager.start = AsyncMock(return_value=self.playwright)
        return manager

    def assert_released(self):
        self.context.close.assert_awaited_once()
        self.browser.close.assert_awaited_once()
        self.playwright.stop.assert_awaited_once()


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def engine_factory():
    return FakeEngine
