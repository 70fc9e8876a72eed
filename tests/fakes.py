"""
Shared fakes for the extractor tests.

``FakeDocumentSession`` stands in for a browser positioned on a gated
document; ``FakeDownloader`` stands in for the CDN.  Neither touches the
network or launches a browser.
"""

import asyncio
import json
import re

import pymupdf

from docsend_extractor.auth import (
    EMAIL_INPUT,
    EMAIL_SUBMIT,
    PASSCODE_INPUT,
    PASSCODE_SUBMIT,
    VERIFY_BUTTON,
)
from docsend_extractor.browser import BrowserSession, HttpResult

DOC_URL = "https://docsend.example/view/abc123"

_PAGE_DATA_RE = re.compile(r"/page_data/(\d+)$")


def make_png(width: int, height: int) -> bytes:
    pix = pymupdf.Pixmap(pymupdf.csRGB, pymupdf.IRect(0, 0, width, height), False)
    pix.clear_with(200)
    return pix.tobytes("png")


def image_url(page_number: int) -> str:
    return f"https://cdn.example/{page_number}.png"


def fallback_url(page_number: int) -> str:
    return f"https://direct.example/{page_number}.png"


class FakeDocumentSession(BrowserSession):
    """A scripted document viewer.

    Args:
        pages:            number of pages whose page_data resolves
        counter_text:     visible text once unlocked (e.g. "1 / 12")
        email_gate:       show the email form first
        email_outcome:    "ok" | "invalid" | "invalid_verify" | "verify_page"
        passcode:         show the passcode form; this value unlocks it
        missing_data:     page numbers whose page_data returns 404
        probe_errors:     page numbers whose page_data raises
    """

    def __init__(
        self,
        pages=0,
        counter_text="",
        email_gate=False,
        email_outcome="ok",
        passcode=None,
        missing_data=(),
        probe_errors=(),
        title="Quarterly Deck | DocSend",
        url=DOC_URL,
    ):
        self.pages = pages
        self.counter_text = counter_text
        self.email_gate_open = email_gate
        self.email_outcome = email_outcome
        self.expected_passcode = passcode
        self.passcode_gate_open = passcode is not None
        self.missing_data = set(missing_data)
        self.probe_errors = set(probe_errors)
        self._title = title
        self._url = url

        self.visible_text = ""
        self.verify_button = False
        self.filled = {}
        self.clicked = []
        self.get_calls = []
        self.blocked = False
        self.closed = False
        self.navigated_to = None

    # -- state --------------------------------------------------------

    @property
    def unlocked(self) -> bool:
        return not self.email_gate_open and not self.passcode_gate_open

    @property
    def url(self) -> str:
        return self._url

    async def goto(self, url):
        self.navigated_to = url

    async def title(self):
        return self._title

    async def body_text(self):
        text = self.visible_text
        if self.unlocked:
            text += "\n" + self.counter_text
        return text

    async def is_visible(self, selector):
        if selector == EMAIL_INPUT:
            return self.email_gate_open
        if selector == PASSCODE_INPUT:
            return not self.email_gate_open and self.passcode_gate_open
        if selector == VERIFY_BUTTON:
            return self.verify_button
        return False

    async def has_visible_text(self, pattern):
        return bool(re.search(pattern, self.visible_text, re.IGNORECASE))

    async def wait_for_any(self, selectors, timeout_ms):
        return True

    async def wait_until_gone(self, selector, timeout_ms, or_text=None):
        if or_text and re.search(or_text, self.visible_text, re.IGNORECASE):
            return True
        return not await self.is_visible(selector)

    async def fill(self, selector, value):
        self.filled[selector] = value

    async def click(self, selector):
        self.clicked.append(selector)

    async def submit(self, selector, timeout_ms):
        self.clicked.append(selector)
        if selector == EMAIL_SUBMIT and self.email_gate_open:
            if self.email_outcome == "ok":
                self.email_gate_open = False
            elif self.email_outcome == "invalid":
                self.visible_text = "Please enter a valid email address."
            elif self.email_outcome == "invalid_verify":
                self.visible_text = "Please enter a valid email address."
                self.verify_button = True
            elif self.email_outcome == "verify_page":
                self.email_gate_open = False
                self.visible_text = "Check your inbox to verify your email."
        elif selector == PASSCODE_SUBMIT and self.passcode_gate_open:
            if self.filled.get(PASSCODE_INPUT) == self.expected_passcode:
                self.passcode_gate_open = False

    async def sleep(self, timeout_ms):
        pass

    async def get(self, url):
        self.get_calls.append(url)
        match = _PAGE_DATA_RE.search(url)
        if not match or not self.unlocked:
            return HttpResult(status=403)
        n = int(match.group(1))
        if n in self.probe_errors:
            raise ConnectionError(f"connection reset on page {n}")
        if n < 1 or n > self.pages or n in self.missing_data:
            return HttpResult(status=404)
        body = json.dumps({"imageUrl": image_url(n), "directImageUrl": fallback_url(n)})
        return HttpResult(status=200, body=body.encode("utf-8"))

    async def block_resources(self):
        self.blocked = True

    async def unblock_resources(self):
        self.blocked = False

    async def close(self):
        self.closed = True


class FakeDownloader:
    """Serves image bytes by URL; unknown URLs fail like a 403 from the CDN."""

    def __init__(self, images=None, delay=0.0):
        self.images = dict(images or {})
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url, referer=None):
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if url not in self.images:
                raise RuntimeError(f"403 Forbidden for {url}")
            return self.images[url]
        finally:
            self.in_flight -= 1


def png_pages(count, missing=()):
    """Primary image URLs for pages 1..count mapped to PNGs of width 10 + n."""
    return {
        image_url(n): make_png(10 + n, 20)
        for n in range(1, count + 1)
        if n not in missing
    }
