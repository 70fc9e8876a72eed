"""
Browser Session
===============
The narrow browser capability the extractor depends on, and its
Playwright implementation.

Architecture:
- One Chromium process shared by all jobs, launched lazily and
  relaunched when found disconnected (``BrowserPool``)
- One BrowserContext per job (isolated cookies and page state)
- Cookie-bearing HTTP requests go through the context's request API

Pipeline stages only talk to ``BrowserSession``, so tests can replace the
browser with an in-memory fake.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .config import ExtractorConfig

logger = logging.getLogger(__name__)

# Fonts and media are never needed for auth or page counting
_BLOCKED_RESOURCE_RE = re.compile(
    r"\.(woff2?|ttf|eot|otf|mp4|webm|ogg|mp3)(\?.*)?$", re.IGNORECASE
)

_LAUNCH_ARGS = [
    '--disable-gpu',
    '--no-sandbox',
    '--disable-dev-shm-usage',
    '--disable-background-networking',
    '--disable-default-apps',
    '--disable-extensions',
    '--disable-sync',
    '--disable-translate',
    '--no-first-run',
]

# Resolves true once ``selector`` is gone/hidden, or ``pattern`` shows up in the body text
_GONE_OR_TEXT_JS = """
([selector, pattern]) => {
    const el = document.querySelector(selector);
    if (!el || el.offsetParent === null) return true;
    if (pattern && new RegExp(pattern, 'i').test(document.body.innerText)) return true;
    return false;
}
"""


@dataclass
class HttpResult:
    """Status and body of a cookie-bearing request."""
    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


class BrowserSession(ABC):
    """One isolated browsing context positioned on a single page."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Current page URL (after redirects)."""

    @abstractmethod
    async def goto(self, url: str) -> None:
        ...

    @abstractmethod
    async def title(self) -> str:
        ...

    @abstractmethod
    async def body_text(self) -> str:
        """Visible text of the rendered page."""

    @abstractmethod
    async def is_visible(self, selector: str) -> bool:
        """True if the first element matching ``selector`` is visible now."""

    @abstractmethod
    async def has_visible_text(self, pattern: str) -> bool:
        """True if visible text matching the case-insensitive regex ``pattern`` is on the page."""

    @abstractmethod
    async def wait_for_any(self, selectors: List[str], timeout_ms: int) -> bool:
        """Wait until any of ``selectors`` is attached. False on timeout."""

    @abstractmethod
    async def wait_until_gone(
        self, selector: str, timeout_ms: int, or_text: Optional[str] = None
    ) -> bool:
        """Wait until ``selector`` is hidden or ``or_text`` appears. False on timeout."""

    @abstractmethod
    async def fill(self, selector: str, value: str) -> None:
        ...

    @abstractmethod
    async def click(self, selector: str) -> None:
        ...

    @abstractmethod
    async def submit(self, selector: str, timeout_ms: int) -> None:
        """Click ``selector`` and wait (best effort) for the resulting navigation."""

    @abstractmethod
    async def sleep(self, timeout_ms: int) -> None:
        ...

    @abstractmethod
    async def get(self, url: str) -> HttpResult:
        """GET ``url`` with the session's cookies. Raises on network failure."""

    async def block_resources(self) -> None:
        """Stop loading fonts and media. Optional capability."""

    async def unblock_resources(self) -> None:
        """Undo ``block_resources``. Optional capability."""

    @abstractmethod
    async def close(self) -> None:
        ...


class PlaywrightSession(BrowserSession):
    """``BrowserSession`` backed by a Playwright context and page."""

    def __init__(self, context: BrowserContext, page: Page):
        self._context = context
        self._page = page
        self._blocking = False

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str) -> None:
        await self._page.goto(url, wait_until="networkidle")

    async def title(self) -> str:
        return await self._page.title()

    async def body_text(self) -> str:
        return await self._page.inner_text("body")

    async def is_visible(self, selector: str) -> bool:
        try:
            return await self._page.locator(selector).first.is_visible()
        except Exception:
            return False

    async def has_visible_text(self, pattern: str) -> bool:
        try:
            return await self._page.locator(f"text=/{pattern}/i").first.is_visible()
        except Exception:
            return False

    async def wait_for_any(self, selectors: List[str], timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(", ".join(selectors), timeout=timeout_ms)
            return True
        except PlaywrightTimeout:
            return False

    async def wait_until_gone(
        self, selector: str, timeout_ms: int, or_text: Optional[str] = None
    ) -> bool:
        try:
            await self._page.wait_for_function(
                _GONE_OR_TEXT_JS, arg=[selector, or_text or ""], timeout=timeout_ms
            )
            return True
        except PlaywrightTimeout:
            return False

    async def fill(self, selector: str, value: str) -> None:
        await self._page.locator(selector).first.fill(value)

    async def click(self, selector: str) -> None:
        await self._page.locator(selector).first.click()

    async def submit(self, selector: str, timeout_ms: int) -> None:
        try:
            async with self._page.expect_navigation(
                wait_until="networkidle", timeout=timeout_ms
            ):
                await self._page.locator(selector).first.click()
        except PlaywrightTimeout:
            # Some gates re-render in place without navigating
            logger.debug("[BROWSER] No navigation after submit, continuing")

    async def sleep(self, timeout_ms: int) -> None:
        await self._page.wait_for_timeout(timeout_ms)

    async def get(self, url: str) -> HttpResult:
        resp = await self._page.request.get(url)
        try:
            body = await resp.body() if resp.ok else b""
        finally:
            await resp.dispose()
        return HttpResult(status=resp.status, body=body)

    async def block_resources(self) -> None:
        if not self._blocking:
            await self._context.route(_BLOCKED_RESOURCE_RE, self._abort_route)
            self._blocking = True

    async def unblock_resources(self) -> None:
        if self._blocking:
            await self._context.unroute(_BLOCKED_RESOURCE_RE, self._abort_route)
            self._blocking = False

    @staticmethod
    async def _abort_route(route) -> None:
        await route.abort()

    async def close(self) -> None:
        try:
            await self._context.close()
        except Exception as e:
            if 'closed' not in str(e).lower():
                logger.warning(f"[BROWSER] Error closing context: {e}")


class BrowserPool:
    """
    Lazily launched Chromium shared across jobs.

    Usage::

        pool = BrowserPool(config)
        session = await pool.new_session()
        try:
            await session.goto(url)
        finally:
            await session.close()
        await pool.close()
    """

    def __init__(self, config: Optional[ExtractorConfig] = None):
        self.config = config or ExtractorConfig()
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _get_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._browser is not None:
                logger.warning("[BROWSER] Browser disconnected, relaunching")
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            launch_kwargs = dict(headless=self.config.headless, args=_LAUNCH_ARGS)
            if self.config.executable_path:
                launch_kwargs["executable_path"] = self.config.executable_path
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)
            logger.info(f"[BROWSER] Chromium launched (headless={self.config.headless})")
            return self._browser

    async def new_session(self) -> PlaywrightSession:
        """Open an isolated context + page for one job."""
        browser = await self._get_browser()
        context = await browser.new_context(user_agent=self.config.user_agent)
        page = await context.new_page()
        return PlaywrightSession(context, page)

    async def close(self) -> None:
        """Close browser and Playwright."""
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except Exception as e:
                    logger.debug(f"[BROWSER] Browser close error: {e}")
                self._browser = None
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.debug(f"[BROWSER] Playwright stop error: {e}")
                self._playwright = None
        logger.info("[BROWSER] Closed")
