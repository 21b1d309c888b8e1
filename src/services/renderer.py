"""Headless-browser rendering of the target page.

The extractor depends only on the ``PageRenderer`` protocol so tests can feed
it canned HTML; ``PlaywrightRenderer`` is the production implementation.
"""

import time
from dataclasses import dataclass
from typing import Protocol

import logfire
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from src.constants import (
    BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
    BROWSER_CHECK_TIMEOUT_SECONDS,
    BROWSER_SETTLE_DELAY_SECONDS,
    DEFAULT_USER_AGENT,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
)
from src.errors import PipelineError

# --no-sandbox is required when running as root inside a container
_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-extensions",
]


class RenderError(PipelineError):
    """Raised when the page cannot be loaded (unreachable, timeout, script error)."""

    pass


@dataclass
class RenderedPage:
    """Snapshot of a rendered page."""

    url: str
    html: str
    visible_text: str


class PageRenderer(Protocol):
    """Protocol for rendering a page in a browser."""

    async def render(self, url: str) -> RenderedPage:
        """Render URL and return its HTML and visible text.

        Raises:
            RenderError: If navigation fails or times out
        """
        ...


class PlaywrightRenderer:
    """Render pages with headless Chromium via Playwright."""

    def __init__(
        self,
        timeout_seconds: float = BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: int = DEFAULT_VIEWPORT_HEIGHT,
        user_agent: str = DEFAULT_USER_AGENT,
        headless: bool = True,
        settle_delay_seconds: float = BROWSER_SETTLE_DELAY_SECONDS,
    ):
        """Initialize the renderer.

        Args:
            timeout_seconds: Bounded wait for navigation
            viewport_width: Browser viewport width in pixels
            viewport_height: Browser viewport height in pixels
            user_agent: User-Agent header sent by the browser
            headless: Run Chromium without a window
            settle_delay_seconds: Wait after network idle for client-rendered content
        """
        self._timeout_ms = int(timeout_seconds * 1000)
        self._viewport = {"width": viewport_width, "height": viewport_height}
        self._user_agent = user_agent
        self._headless = headless
        self._settle_ms = int(settle_delay_seconds * 1000)

    async def render(self, url: str) -> RenderedPage:
        start_time = time.time()
        logfire.info("Rendering page", url=url, timeout_ms=self._timeout_ms)

        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(
                    headless=self._headless, args=_CHROMIUM_ARGS
                )
                try:
                    context = await browser.new_context(
                        viewport=self._viewport, user_agent=self._user_agent
                    )
                    page = await context.new_page()
                    await page.goto(
                        url, wait_until="networkidle", timeout=self._timeout_ms
                    )
                    if self._settle_ms > 0:
                        await page.wait_for_timeout(self._settle_ms)

                    html = await page.content()
                    visible_text = await page.evaluate("() => document.body.innerText")
                finally:
                    await browser.close()
        except PlaywrightTimeoutError as e:
            logfire.error("Page navigation timed out", url=url, error=str(e))
            raise RenderError(f"Timed out loading {url}: {e}") from e
        except PlaywrightError as e:
            logfire.error("Page rendering failed", url=url, error=str(e))
            raise RenderError(f"Failed to render {url}: {e}") from e

        elapsed = time.time() - start_time
        logfire.info(
            "Page rendered",
            url=url,
            content_length=len(html),
            text_length=len(visible_text or ""),
            render_time_ms=elapsed * 1000,
        )
        return RenderedPage(url=url, html=html, visible_text=visible_text or "")


async def check_url_reachable(
    url: str, timeout_seconds: float = BROWSER_CHECK_TIMEOUT_SECONDS
) -> bool:
    """Return True if the browser can load URL up to DOMContentLoaded."""
    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=True, args=_CHROMIUM_ARGS)
            try:
                page = await browser.new_page()
                await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=int(timeout_seconds * 1000),
                )
            finally:
                await browser.close()
        return True
    except PlaywrightError as e:
        logfire.error("Connection test failed", url=url, error=str(e))
        return False
