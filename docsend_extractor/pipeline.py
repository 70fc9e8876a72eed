"""
Extraction Pipeline
===================
Runs the stages for one document, strictly in order:

    negotiate gates → discover page count → fetch page images → assemble PDF

Each job gets its own browser session, closed when the run ends.
Progress is reported through a plain callback; the job manager turns
those calls into broadcast events.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .assembler import PdfAssembler
from .auth import EMAIL_INPUT, PASSCODE_INPUT, GateNegotiator
from .browser import BrowserPool, BrowserSession
from .config import ExtractorConfig
from .discovery import PageCountDiscoverer
from .errors import InvalidUrl
from .fetcher import BatchedAssetFetcher
from .models import Credentials, ExtractionResult, JobStatus
from .utils import clean_document_title, is_valid_document_url, normalize_document_url

logger = logging.getLogger(__name__)

# Any of these means the landing page finished rendering
_LANDING_SELECTORS = [EMAIL_INPUT, PASSCODE_INPUT, '.document-page', '[class*="page"]']

ProgressCallback = Callable[[JobStatus, int, int, Optional[str]], None]
SessionFactory = Callable[[], Awaitable[BrowserSession]]


def _ignore_progress(status, current_page, total_pages, document_title) -> None:
    pass


class DocumentExtractor:
    """
    Extracts one gated document into PDF bytes.

    Usage::

        extractor = DocumentExtractor(config)
        result = await extractor.extract(url, Credentials(email="me@corp.com"))
        Path("deck.pdf").write_bytes(result.pdf)
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        negotiator: Optional[GateNegotiator] = None,
        discoverer: Optional[PageCountDiscoverer] = None,
        fetcher: Optional[BatchedAssetFetcher] = None,
        assembler: Optional[PdfAssembler] = None,
    ):
        self.config = config or ExtractorConfig()
        self._pool: Optional[BrowserPool] = None
        if session_factory is None:
            self._pool = BrowserPool(self.config)
            session_factory = self._pool.new_session
        self._session_factory = session_factory
        self.negotiator = negotiator or GateNegotiator(self.config)
        self.discoverer = discoverer or PageCountDiscoverer(self.config)
        self.fetcher = fetcher or BatchedAssetFetcher(self.config)
        self.assembler = assembler or PdfAssembler()

    async def extract(
        self,
        url: str,
        credentials: Optional[Credentials] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExtractionResult:
        """Run every stage for ``url``. Raises ``ExtractionError`` subclasses on failure."""
        if not is_valid_document_url(url):
            raise InvalidUrl(f"Not a recognised document URL: {url}")
        notify = on_progress or _ignore_progress
        target = normalize_document_url(url)

        session = await self._session_factory()
        try:
            await session.block_resources()
            await session.goto(target)
            await session.wait_for_any(_LANDING_SELECTORS, self.config.landing_wait_ms)

            await self.negotiator.negotiate(session, credentials)

            # Gates may redirect; page data hangs off the final URL
            base_url = session.url.rstrip("/")
            document_title = clean_document_title(await session.title())

            total_pages = await self.discoverer.discover(session, base_url)
            logger.info(f"[PIPELINE] '{document_title}': {total_pages} pages")
            notify(JobStatus.SCRAPING, 0, total_pages, document_title)

            await session.unblock_resources()
            images = await self.fetcher.fetch_all(
                session,
                base_url,
                total_pages,
                on_progress=lambda done: notify(
                    JobStatus.SCRAPING, done, total_pages, document_title
                ),
            )
        finally:
            await session.close()

        notify(JobStatus.BUILDING_PDF, total_pages, total_pages, document_title)
        loop = asyncio.get_running_loop()
        pdf = await loop.run_in_executor(
            None, self.assembler.build, [image.data for image in images]
        )

        return ExtractionResult(
            pdf=pdf,
            document_title=document_title,
            total_pages=total_pages,
            page_count=len(images),
        )

    async def close(self) -> None:
        """Shut down the browser this extractor launched, if any."""
        if self._pool is not None:
            await self._pool.close()
