"""
Tests for the command-line entry point.
"""

import argparse
import asyncio
import re

import pytest

from docsend_extractor.__main__ import _run
from docsend_extractor.config import ExtractorConfig
from docsend_extractor.fetcher import BatchedAssetFetcher
from docsend_extractor.job_manager import JobManager
from docsend_extractor.pipeline import DocumentExtractor
from docsend_extractor.service import ExtractionService

from fakes import DOC_URL, FakeDocumentSession, FakeDownloader, png_pages


def _args(tmp_path, urls, **kwargs):
    values = dict(urls=urls, email=None, passcode=None, out_dir=str(tmp_path / "out"))
    values.update(kwargs)
    return argparse.Namespace(**values)


def _service(config, **session_kwargs):
    async def factory():
        return FakeDocumentSession(pages=2, **session_kwargs)

    extractor = DocumentExtractor(
        config,
        session_factory=factory,
        fetcher=BatchedAssetFetcher(config, downloader=FakeDownloader(png_pages(2))),
    )
    return ExtractionService(JobManager(extractor, config=config))


class TestFromCliArgs:

    def test_flags_override(self, monkeypatch):
        monkeypatch.setenv("DOCSEND_MAX_CONCURRENT_JOBS", "3")
        args = argparse.Namespace(concurrency=None, batch_size=4, headed=True, chromium="/bin/chrome")
        cfg = ExtractorConfig.from_cli_args(args)
        assert cfg.max_concurrent_jobs == 3
        assert cfg.image_batch_size == 4
        assert cfg.headless is False
        assert cfg.executable_path == "/bin/chrome"

    def test_invalid_flag_value(self):
        args = argparse.Namespace(concurrency=None, batch_size=-1, headed=False, chromium=None)
        with pytest.raises(ValueError):
            ExtractorConfig.from_cli_args(args)


class TestRun:

    def test_writes_pdf(self, tmp_path, capsys):
        cfg = ExtractorConfig()
        code = asyncio.run(_run(_args(tmp_path, [DOC_URL]), cfg, _service(cfg)))
        assert code == 0
        saved = tmp_path / "out" / "Quarterly Deck.pdf"
        assert saved.read_bytes().startswith(b"%PDF")
        assert "SAVED" in capsys.readouterr().out

    def test_failed_job_sets_exit_code(self, tmp_path, capsys):
        cfg = ExtractorConfig()
        code = asyncio.run(_run(_args(tmp_path, [DOC_URL]), cfg, _service(cfg, passcode="secret")))
        assert code == 1
        assert "FAILED" in capsys.readouterr().out

    def test_invalid_url(self, tmp_path):
        cfg = ExtractorConfig()
        code = asyncio.run(_run(_args(tmp_path, ["https://example.com/x"]), cfg, _service(cfg)))
        assert code == 2

    def test_initial_state_printed_for_every_job(self, tmp_path, capsys):
        """Running and queued jobs both show a line before any later progress."""
        cfg = ExtractorConfig(max_concurrent_jobs=1)
        urls = [DOC_URL, "https://docsend.example/view/second1"]
        code = asyncio.run(_run(_args(tmp_path, urls), cfg, _service(cfg)))
        assert code == 0

        lines = capsys.readouterr().out.splitlines()
        initial = [m.group(1) for m in (re.match(r"^\[[0-9a-f]{8}\] (\w+)$", l) for l in lines) if m]
        assert initial[:2] == ["scraping", "queued"]
        assert re.match(r"^\[[0-9a-f]{8}\] scraping$", lines[0])
