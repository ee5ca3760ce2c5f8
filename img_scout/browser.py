"""Rendered acquisition: load a page in headless Chromium and scan the live DOM."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Dict, List, Optional

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import ScanConfig
from .content import SnapshotDocument, scan_document, scan_markup
from .errors import RenderFailure, TransportFailure
from .fetch import Strategy, fetch_text_within
from .models import Failure, RetrievalOutcome, Success

logger = logging.getLogger("img_scout")

SCROLL_SCRIPT = """
async ({ step, pause, maxSteps }) => {
    await new Promise((resolve) => {
        let total = 0;
        let steps = 0;
        const timer = setInterval(() => {
            const scrollHeight = document.body ? document.body.scrollHeight : 0;
            window.scrollBy(0, step);
            total += step;
            steps += 1;
            if (total >= scrollHeight || steps >= maxSteps) {
                clearInterval(timer);
                resolve();
            }
        }, pause);
    });
}
"""

# Serializes every element with the data the scanner reads; background
# images come from computed styles, img sources from the resolved property.
SNAPSHOT_SCRIPT = """
() => Array.from(document.querySelectorAll('*')).map((el) => {
    const tag = el.tagName.toLowerCase();
    const attrs = {};
    for (const attr of Array.from(el.attributes)) {
        attrs[attr.name] = attr.value;
    }
    const item = { tag, attrs };
    const style = window.getComputedStyle(el);
    if (style && style.backgroundImage && style.backgroundImage !== 'none') {
        item.background = style.backgroundImage;
    }
    if (tag === 'script' || tag === 'style') {
        item.text = el.textContent || '';
    }
    if (tag === 'source') {
        item.inPicture = el.closest('picture') !== null;
    }
    if (tag === 'img') {
        item.src = el.src || '';
        item.width = el.width || null;
        item.height = el.height || null;
    }
    return item;
})
"""


def find_browser_executable(config: ScanConfig) -> Optional[str]:
    """Prefer a configured or system Chrome; None means Playwright's bundled build."""
    if config.browser_executable:
        return config.browser_executable
    for candidate in config.chrome_candidates:
        if Path(candidate).exists():
            logger.info("Found Chrome at: %s", candidate)
            return candidate
    return None


class BrowserSession:
    """Exclusive handle over one headless browser and its page."""

    def __init__(self, browser: Browser, page: Page, config: ScanConfig) -> None:
        self.browser = browser
        self.page = page
        self.config = config
        self.closed = False

    async def navigate(self, url: str) -> None:
        logger.info("Loading %s", url)
        await self.page.goto(
            url,
            wait_until="networkidle",
            timeout=self.config.navigation_timeout * 1000,
        )

    async def settle(self, seconds: float) -> None:
        if seconds:
            await self.page.wait_for_timeout(int(seconds * 1000))

    async def scroll_to_bottom(self) -> None:
        """Scroll in fixed steps so viewport-triggered lazy loaders fire."""
        await self.page.evaluate(
            SCROLL_SCRIPT,
            {
                "step": self.config.scroll_step,
                "pause": int(self.config.scroll_pause * 1000),
                "maxSteps": self.config.max_scroll_steps,
            },
        )

    async def snapshot(self) -> List[Dict[str, Any]]:
        return await self.page.evaluate(SNAPSHOT_SCRIPT)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.browser.close()


@asynccontextmanager
async def open_session(config: ScanConfig) -> AsyncIterator[BrowserSession]:
    """Launch Chromium and guarantee it is closed on every exit path."""
    async with async_playwright() as playwright:
        launch_options: Dict[str, Any] = {
            "headless": True,
            "args": list(config.launch_args),
        }
        executable = find_browser_executable(config)
        if executable:
            launch_options["executable_path"] = executable
        browser = await playwright.chromium.launch(**launch_options)
        session: Optional[BrowserSession] = None
        try:
            context = await browser.new_context(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
                user_agent=config.user_agent,
            )
            page = await context.new_page()
            page.set_default_navigation_timeout(config.navigation_timeout * 1000)
            session = BrowserSession(browser, page, config)
            yield session
        finally:
            if session is not None:
                await session.close()
            else:
                await browser.close()


SessionFactory = Callable[[ScanConfig], AsyncContextManager[BrowserSession]]


class RenderedStrategy(Strategy):
    """Render the page, trigger lazy loading and scan the hydrated DOM."""

    name = "rendered"

    def __init__(
        self,
        config: ScanConfig,
        session_factory: SessionFactory = open_session,
    ) -> None:
        self.config = config
        self.session_factory = session_factory

    async def render(self, url: str) -> List[Dict[str, Any]]:
        try:
            async with self.session_factory(self.config) as session:
                await session.navigate(url)
                await session.settle(self.config.wait_after_load)
                await session.scroll_to_bottom()
                await session.settle(self.config.wait_after_scroll)
                return await session.snapshot()
        except PlaywrightTimeoutError as exc:
            raise RenderFailure(f"navigation timed out: {exc}") from exc
        except PlaywrightError as exc:
            raise RenderFailure(str(exc)) from exc

    async def attempt(self, url: str) -> RetrievalOutcome:
        try:
            snapshot = await self.render(url)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Browser extraction error for %s: %s", url, exc)
            return await self.fallback(url, exc)
        images = scan_document(SnapshotDocument(snapshot), url)
        logger.info("Found %d images using browser extraction", len(images))
        return Success(images=tuple(images))

    async def fallback(self, url: str, error: Exception) -> RetrievalOutcome:
        """One non-rendered fetch of the same page after a render failure."""
        logger.info("Browser extraction failed, trying simple extraction as fallback")
        try:
            html = await fetch_text_within(
                url, self.config.page_headers(), self.config.fallback_timeout
            )
        except TransportFailure as exc:
            logger.error("Simple extraction fallback also failed: %s", exc)
            return Failure(
                f"Browser extraction failed: {error}. "
                f"Simple extraction fallback also failed: {exc}"
            )
        images = scan_markup(html, url)
        if not images:
            logger.warning("Simple extraction fallback found no images on %s", url)
            return Failure(
                f"Browser extraction failed: {error}. "
                "Simple extraction fallback found no images"
            )
        logger.info("Found %d images using simple extraction fallback", len(images))
        return Success(images=tuple(images), fallback_used=True)
