"""
Browser Session Service.

Owns one Chromium process and page for a single preview request: launch,
navigation with retries and readiness detection, DOM snapshot, screenshot
and cleanup. Sessions are never pooled or shared between requests.

Usage:
    async with BrowserSession() as session:
        await session.navigate(url)
        record = await session.extract()
"""

import asyncio
import logging
import random
from typing import Callable, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from ..config import Settings, settings
from ..errors import GenerationError, LaunchError, NavigationError
from ..models import PreviewRecord
from .metadata_extractor import PageSnapshot, extract_preview

logger = logging.getLogger("link_preview.browser_session")

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--ignore-certificate-errors",
    "--ignore-certificate-errors-spki-list",
]

STEALTH_SCRIPTS = [
    # navigator.webdriver = false
    """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => false,
    });
    """,
    # Languages array
    """
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en'],
    });
    """,
]

READINESS_CHECK = "minChars => !!document.body && document.body.innerText.length > minChars"


class BrowserSession:
    """
    A single-use headless browser bound to one preview request.

    Entering the session launches Chromium and opens a page; leaving it
    always releases the page, context, browser and Playwright driver, even
    when the body raised. Cleanup failures are logged and never replace the
    error being propagated.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        engine_factory: Callable = async_playwright,
    ):
        self._config = config or settings
        self._engine_factory = engine_factory
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._released = False

    async def __aenter__(self) -> "BrowserSession":
        try:
            await self.launch()
            await self.open_page()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    @property
    def released(self) -> bool:
        """Whether every browser resource has been released."""
        return self._released

    @property
    def page(self) -> Page:
        if self._page is None:
            raise GenerationError("Browser page is not open")
        return self._page

    async def launch(self) -> None:
        """
        Start an isolated Chromium instance.

        Raises:
            LaunchError: If the engine fails to start within the launch timeout
        """
        logger.info("Launching browser")
        try:
            self._playwright = await self._engine_factory().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._config.browser_headless,
                args=LAUNCH_ARGS,
                timeout=self._config.browser_launch_timeout_ms,
            )
        except PlaywrightError as e:
            raise LaunchError(f"Browser launch failed: {e}") from e
        logger.info("Browser launched successfully")

    async def open_page(self) -> Page:
        """Create a page with a desktop user agent and a slightly randomized viewport."""
        jitter = max(self._config.viewport_jitter, 0)
        viewport = {
            "width": self._config.viewport_width + random.randrange(jitter or 1),
            "height": self._config.viewport_height + random.randrange(jitter or 1),
        }
        try:
            self._context = await self._browser.new_context(
                user_agent=self._config.user_agent,
                viewport=viewport,
                ignore_https_errors=True,
                java_script_enabled=True,
            )
            self._page = await self._context.new_page()
            if self._config.browser_stealth:
                for script in STEALTH_SCRIPTS:
                    await self._page.add_init_script(script)
        except PlaywrightError as e:
            raise LaunchError(f"Failed to open browser page: {e}") from e

        logger.debug(f"Page opened with viewport {viewport['width']}x{viewport['height']}")
        return self._page

    async def navigate(self, url: str) -> str:
        """
        Navigate to ``url``, retrying on failure.

        Each attempt waits for DOMContentLoaded only. Attempts are separated
        by a fixed pause. After a successful navigation the page is given a
        bounded chance to render visible text.

        Args:
            url: Normalized URL to open

        Returns:
            Final page URL after redirects

        Raises:
            NavigationError: If every attempt failed
        """
        max_attempts = self._config.navigation_max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Navigating to {url} (attempt {attempt} of {max_attempts})")
            try:
                await self.page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self._config.navigation_timeout_ms,
                    referer=self._config.navigation_referer,
                )
                break
            except PlaywrightError as e:
                last_error = e
                logger.warning(f"Navigation attempt {attempt} failed: {e}")
                if attempt < max_attempts:
                    logger.info(f"Retrying in {self._config.navigation_retry_delay_s} seconds...")
                    await asyncio.sleep(self._config.navigation_retry_delay_s)
        else:
            raise NavigationError(
                f"Navigation failed after {max_attempts} attempts: {last_error}",
                attempts=max_attempts,
            ) from last_error

        await self.wait_until_ready()
        logger.info(f"Navigation complete: {self.page.url}")
        return self.page.url

    async def wait_until_ready(self) -> bool:
        """
        Wait for the body to contain more than a few characters of text.

        A page that never gets there is still extracted; the timeout only
        keeps us from snapshotting a blank shell too early.

        Returns:
            True if the readiness signal was observed
        """
        try:
            await self.page.wait_for_function(
                READINESS_CHECK,
                arg=self._config.readiness_min_text_chars,
                timeout=self._config.readiness_timeout_ms,
            )
            return True
        except PlaywrightTimeout:
            logger.warning(
                f"Page body not ready within {self._config.readiness_timeout_ms}ms, "
                f"extracting anyway"
            )
        except PlaywrightError as e:
            logger.warning(f"Readiness check failed, extracting anyway: {e}")
        return False

    async def snapshot(self) -> PageSnapshot:
        """Capture the rendered DOM and final URL of the live page."""
        try:
            html = await self.page.content()
            final_url = self.page.url
        except PlaywrightError as e:
            raise GenerationError(f"Failed to read page content: {e}") from e
        return PageSnapshot.from_html(html, final_url)

    async def extract(self) -> PreviewRecord:
        """
        Run metadata extraction against the live page.

        Raises:
            GenerationError: If the page cannot be read or parsed
        """
        logger.info("Extracting metadata...")
        snapshot = await self.snapshot()
        try:
            return extract_preview(snapshot)
        except (ValueError, TypeError) as e:
            raise GenerationError(f"Metadata extraction failed: {e}") from e

    async def screenshot(self) -> bytes:
        """
        Capture the current viewport as PNG.

        Raises:
            GenerationError: If the capture fails
        """
        try:
            return await self.page.screenshot(
                full_page=False,
                type="png",
                timeout=self._config.screenshot_timeout_ms,
            )
        except PlaywrightError as e:
            raise GenerationError(f"Screenshot capture failed: {e}") from e

    async def close(self) -> None:
        """Release the context, browser and driver. Never raises."""
        if self._released:
            return

        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")
            self._context = None
            self._page = None

        if self._browser is not None:
            logger.info("Closing browser...")
            try:
                await self._browser.close()
                logger.info("Browser closed successfully")
            except Exception as e:
                logger.error(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright driver: {e}")
            self._playwright = None

        self._released = True
