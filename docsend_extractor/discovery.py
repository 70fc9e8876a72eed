"""
Page Count Discovery
====================
Finds how many pages an unlocked document has.

1. Cheap heuristic: parse a "3 / 12" or "3 of 12" counter from the
   rendered page text.
2. Fallback: probe the per-page data endpoint — exponential upper bound
   (2, 4, 8, ... capped at ``max_probe_pages``), then binary search for
   the highest index that still resolves.  O(log n) requests.

A probe that raises is counted exactly like a non-success response, so a
flaky network can under-count pages.  Probes are not retried.
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Optional

from .browser import BrowserSession
from .config import ExtractorConfig
from .errors import PageCountUnknown
from .utils import page_data_url

logger = logging.getLogger(__name__)

_SLASH_COUNTER_RE = re.compile(r"\d+\s*/\s*(\d+)")
_OF_COUNTER_RE = re.compile(r"\d+\s+of\s+(\d+)", re.IGNORECASE)

PageExists = Callable[[int], Awaitable[bool]]


def parse_page_count(text: Optional[str]) -> int:
    """Total from a "current / total" or "current of total" counter, else 0."""
    if not text:
        return 0
    for pattern in (_SLASH_COUNTER_RE, _OF_COUNTER_RE):
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return 0


async def probe_page_count(exists: PageExists, cap: int = 500) -> int:
    """
    Highest page index for which ``exists`` is true, assuming pages 1..k exist.

    Args:
        exists: async predicate for a 1-based page index
        cap:    largest page count that can be reported

    Returns:
        The page count, or 0 when page 1 does not exist
    """
    if not await exists(1):
        return 0

    upper = 2
    while upper <= cap:
        if not await exists(upper):
            break
        upper *= 2
    upper = min(upper, cap)

    low, high = upper // 2, upper
    while low < high:
        mid = (low + high + 1) // 2
        if await exists(mid):
            low = mid
        else:
            high = mid - 1
    return low


class PageCountDiscoverer:
    """Determines the page count of an unlocked document."""

    def __init__(self, config: Optional[ExtractorConfig] = None):
        self.config = config or ExtractorConfig()

    async def discover(self, session: BrowserSession, base_url: str) -> int:
        try:
            text = await session.body_text()
        except Exception as e:
            logger.debug(f"[PAGES] Could not read page text: {e}")
            text = ""

        count = parse_page_count(text)
        if count > 0:
            logger.info(f"[PAGES] Page counter found: {count} pages")
            return count

        logger.info("[PAGES] No page counter, probing page_data endpoint")
        probes = 0

        async def exists(page_number: int) -> bool:
            nonlocal probes
            probes += 1
            try:
                result = await session.get(page_data_url(base_url, page_number))
            except Exception as e:
                logger.debug(f"[PAGES] Probe {page_number} failed: {e}")
                return False
            return result.ok

        count = await probe_page_count(exists, cap=self.config.max_probe_pages)
        logger.info(f"[PAGES] Probing found {count} pages ({probes} requests)")
        if count <= 0:
            raise PageCountUnknown()
        return count
