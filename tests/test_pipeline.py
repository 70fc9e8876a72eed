"""
End-to-end pipeline tests with a fake browser and CDN and a real PDF assembler.
"""

import asyncio

import pymupdf
import pytest

from docsend_extractor.config import ExtractorConfig
from docsend_extractor.errors import InvalidUrl, MissingPasscode, NoPagesRetrieved, PageCountUnknown
from docsend_extractor.fetcher import BatchedAssetFetcher
from docsend_extractor.models import Credentials, JobStatus
from docsend_extractor.pipeline import DocumentExtractor

from fakes import DOC_URL, FakeDocumentSession, FakeDownloader, png_pages


def _extractor(session, downloader, config=None):
    config = config or ExtractorConfig()

    async def factory():
        return session

    return DocumentExtractor(
        config,
        session_factory=factory,
        fetcher=BatchedAssetFetcher(config, downloader=downloader),
    )


def _run(extractor, url=DOC_URL, credentials=None):
    events = []

    def on_progress(status, current, total, title):
        events.append((status, current, total, title))

    result = asyncio.run(extractor.extract(url, credentials, on_progress))
    return result, events


class TestDocumentExtractor:

    def test_twelve_page_document(self):
        session = FakeDocumentSession(pages=12)
        extractor = _extractor(session, FakeDownloader(png_pages(12)))
        result, events = _run(extractor)

        assert result.total_pages == 12
        assert result.page_count == 12
        assert result.document_title == "Quarterly Deck"

        doc = pymupdf.open(stream=result.pdf, filetype="pdf")
        try:
            assert doc.page_count == 12
            # page n was rendered 10 + n pixels wide
            assert [round(p.rect.width) for p in doc] == [10 + n for n in range(1, 13)]
        finally:
            doc.close()

        assert session.navigated_to == DOC_URL
        assert session.closed

    def test_progress_sequence(self):
        session = FakeDocumentSession(pages=12, counter_text="1 / 12")
        _, events = _run(_extractor(session, FakeDownloader(png_pages(12))))
        assert events == [
            (JobStatus.SCRAPING, 0, 12, "Quarterly Deck"),
            (JobStatus.SCRAPING, 10, 12, "Quarterly Deck"),
            (JobStatus.SCRAPING, 12, 12, "Quarterly Deck"),
            (JobStatus.BUILDING_PDF, 12, 12, "Quarterly Deck"),
        ]

    def test_skipped_pages_left_out(self):
        session = FakeDocumentSession(pages=5)
        result, _ = _run(_extractor(session, FakeDownloader(png_pages(5, missing={2, 4}))))
        assert result.page_count == 3
        assert result.total_pages == 5

    def test_url_normalised(self):
        session = FakeDocumentSession(pages=1)
        _run(_extractor(session, FakeDownloader(png_pages(1))), url="docsend.example/view/abc123/")
        assert session.navigated_to == DOC_URL

    def test_invalid_url_never_opens_browser(self):
        opened = []

        async def factory():
            opened.append(True)
            return FakeDocumentSession()

        extractor = DocumentExtractor(ExtractorConfig(), session_factory=factory)
        with pytest.raises(InvalidUrl):
            asyncio.run(extractor.extract("https://example.com/view/abc"))
        assert opened == []

    def test_missing_passcode_skips_discovery(self):
        session = FakeDocumentSession(pages=4, passcode="secret")
        with pytest.raises(MissingPasscode):
            _run(_extractor(session, FakeDownloader(png_pages(4))))
        assert session.get_calls == []
        assert session.closed

    def test_passcode_document(self):
        session = FakeDocumentSession(pages=3, passcode="secret")
        result, _ = _run(
            _extractor(session, FakeDownloader(png_pages(3))),
            credentials=Credentials(passcode="secret"),
        )
        assert result.page_count == 3

    def test_wrong_passcode_fails_on_page_count(self):
        session = FakeDocumentSession(pages=3, passcode="secret")
        with pytest.raises(PageCountUnknown):
            _run(
                _extractor(session, FakeDownloader(png_pages(3))),
                credentials=Credentials(passcode="wrong"),
            )

    def test_no_pages_retrieved(self):
        session = FakeDocumentSession(pages=3)
        with pytest.raises(NoPagesRetrieved):
            _run(_extractor(session, FakeDownloader({})))
        assert session.closed

    def test_bare_site_title(self):
        session = FakeDocumentSession(pages=1, title="DocSend")
        result, _ = _run(_extractor(session, FakeDownloader(png_pages(1))))
        assert result.document_title == "Document"
