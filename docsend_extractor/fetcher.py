"""
Batched Asset Fetcher
=====================
Retrieves every page image of an unlocked document.

Phase 1 — metadata: all ``page_data`` records are requested at once
(small JSON responses, cookie-authenticated through the browser).
Phase 2 — images: pages are downloaded in fixed-size batches to bound
simultaneous connections; each page tries its primary image URL, then
its fallback.  Pages that fail are skipped, never retried, and never
fail the job unless every page is lost.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import requests

from .browser import BrowserSession, HttpResult
from .config import ExtractorConfig
from .errors import NoPagesRetrieved, PageDownloadError
from .models import ImageBuffer, PageAsset
from .utils import page_data_url, referer_for

logger = logging.getLogger(__name__)

FetchPageData = Callable[[int], Awaitable[HttpResult]]
FetchBytes = Callable[[str], Awaitable[bytes]]
BatchCallback = Callable[[int], None]


# ---------------------------------------------------------------------------
# Building blocks (plain callables, no browser specifics)
# ---------------------------------------------------------------------------

async def fetch_page_assets(
    fetch_page_data: FetchPageData, total_pages: int
) -> List[Optional[PageAsset]]:
    """Request every page's metadata concurrently. Failed slots are ``None``."""

    async def _one(page_number: int) -> Optional[PageAsset]:
        try:
            result = await fetch_page_data(page_number)
            if not result.ok:
                logger.warning(f"[FETCH] page_data {page_number} returned HTTP {result.status}")
                return None
            asset = PageAsset.from_page_data(page_number, result.json())
        except Exception as e:
            logger.warning(f"[FETCH] page_data {page_number} failed: {e}")
            return None
        if asset is None:
            logger.warning(f"[FETCH] page_data {page_number} has no image URL")
        return asset

    return list(await asyncio.gather(*(_one(n) for n in range(1, total_pages + 1))))


async def download_with_fallback(asset: PageAsset, fetch: FetchBytes) -> bytes:
    """Primary image URL first, fallback second. Raises ``PageDownloadError``."""
    last_error: Optional[Exception] = None
    for url in asset.candidate_urls:
        try:
            return await fetch(url)
        except Exception as e:
            last_error = e
    raise PageDownloadError(asset.page_number, str(last_error) if last_error else "")


async def download_in_batches(
    assets: Sequence[Optional[PageAsset]],
    fetch: FetchBytes,
    batch_size: int = 10,
    on_batch: Optional[BatchCallback] = None,
) -> List[ImageBuffer]:
    """
    Download page images ``batch_size`` at a time.

    Args:
        assets:     one slot per page in page order; ``None`` = no metadata
        fetch:      async ``url -> bytes``, raising on failure
        batch_size: maximum simultaneous downloads
        on_batch:   called after each batch with the number of pages attempted so far

    Returns:
        Successful images in ascending page order, gaps removed
    """
    total = len(assets)
    buffers: List[Optional[bytes]] = [None] * total

    for batch_start in range(0, total, batch_size):
        batch_end = min(batch_start + batch_size, total)
        indices = [i for i in range(batch_start, batch_end) if assets[i] is not None]

        results = await asyncio.gather(
            *(download_with_fallback(assets[i], fetch) for i in indices),
            return_exceptions=True,
        )
        for i, result in zip(indices, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"[FETCH] Skipping page {i + 1}: {result}")
            else:
                buffers[i] = result

        if on_batch is not None:
            on_batch(batch_end)

    return [ImageBuffer(page_index=i, data=data) for i, data in enumerate(buffers) if data is not None]


# ---------------------------------------------------------------------------
# Image downloads outside the browser
# ---------------------------------------------------------------------------

class ImageDownloader:
    """Fetches signed CDN image URLs with ``requests`` in the default executor."""

    def __init__(self, config: Optional[ExtractorConfig] = None):
        self.config = config or ExtractorConfig()

    async def fetch(self, url: str, referer: Optional[str] = None) -> bytes:
        headers = {"User-Agent": self.config.user_agent}
        if referer:
            headers["Referer"] = referer
        timeout = self.config.image_timeout_s
        loop = asyncio.get_running_loop()

        def _sync_fetch() -> bytes:
            r = requests.get(url, headers=headers, timeout=timeout)
            r.raise_for_status()
            if not r.content:
                raise ValueError("empty image response")
            return r.content

        return await loop.run_in_executor(None, _sync_fetch)


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------

class BatchedAssetFetcher:
    """
    Metadata fan-out + batched image download for one document.

    Usage::

        fetcher = BatchedAssetFetcher(config)
        images = await fetcher.fetch_all(session, base_url, 12, on_progress)
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        downloader: Optional[Any] = None,
    ):
        self.config = config or ExtractorConfig()
        self.downloader = downloader or ImageDownloader(self.config)

    async def fetch_all(
        self,
        session: BrowserSession,
        base_url: str,
        total_pages: int,
        on_progress: Optional[BatchCallback] = None,
    ) -> List[ImageBuffer]:
        assets = await fetch_page_assets(
            lambda n: session.get(page_data_url(base_url, n)), total_pages
        )
        missing = sum(1 for a in assets if a is None)
        if missing:
            logger.warning(f"[FETCH] {missing}/{total_pages} pages have no metadata")

        referer = referer_for(base_url)

        async def fetch(url: str) -> bytes:
            return await self.downloader.fetch(url, referer=referer)

        images = await download_in_batches(
            assets, fetch, batch_size=self.config.image_batch_size, on_batch=on_progress
        )
        if not images:
            raise NoPagesRetrieved()

        skipped = total_pages - len(images)
        logger.info(
            f"[FETCH] Retrieved {len(images)}/{total_pages} pages"
            + (f" ({skipped} skipped)" if skipped else "")
        )
        return images
