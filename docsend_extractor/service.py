"""
Extraction Service
==================
Framework-neutral request handling on top of the job manager.

- ``submit`` / ``submit_many`` — validate URLs, create and start jobs
- ``status_stream``           — server-sent-event frames for one job,
                                ending at a terminal status
- ``download``                — artifact bytes with a content-disposition
                                filename, or a 404/409/410/422 error
- ``stream_extraction``       — run the whole pipeline inline and stream
                                progress plus the base64 PDF in chunks

A web layer only has to copy frames and responses onto its transport.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from .config import ExtractorConfig
from .errors import (
    ArtifactError,
    ArtifactExpired,
    ArtifactJobFailed,
    ArtifactNotFound,
    ArtifactNotReady,
    ExtractionError,
    InvalidUrl,
)
from .job_manager import UNEXPECTED_ERROR_MESSAGE, JobManager
from .models import Credentials, Job, JobStatus, ProgressEvent
from .utils import is_valid_document_url, sanitize_filename

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-store",
    "Connection": "keep-alive",
}


def format_sse(data: Dict[str, Any], event: Optional[str] = None) -> str:
    """One server-sent-event frame."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data, ensure_ascii=False)}")
    return "\n".join(lines) + "\n\n"


@dataclass
class DownloadResponse:
    status_code: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def from_error(cls, err: ArtifactError) -> "DownloadResponse":
        body = json.dumps({"error": err.message}).encode("utf-8")
        return cls(
            status_code=err.status_code,
            body=body,
            headers={"Content-Type": "application/json"},
            error=err.message,
        )


class ExtractionService:
    """
    Usage::

        service = ExtractionService()
        job = service.submit("https://docsend.com/view/abc123", passcode="s3cret")
        async for frame in service.status_stream(job.id):
            send(frame)
        response = service.download(job.id)
    """

    def __init__(
        self,
        manager: Optional[JobManager] = None,
        config: Optional[ExtractorConfig] = None,
    ):
        self.manager = manager or JobManager(config=config)
        self.config = config or self.manager.config

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self, url: str, email: Optional[str] = None, passcode: Optional[str] = None
    ) -> Job:
        """Validate, create and start one job. Raises ``InvalidUrl``."""
        return self.submit_many([url], email=email, passcode=passcode)[0]

    def submit_many(
        self,
        urls: Iterable[str],
        email: Optional[str] = None,
        passcode: Optional[str] = None,
    ) -> List[Job]:
        """Validate every URL first; create and start jobs only if all are valid."""
        urls = [u.strip() for u in urls if u and u.strip()]
        if not urls:
            raise InvalidUrl("No URLs provided.")
        for url in urls:
            if not is_valid_document_url(url):
                raise InvalidUrl(f"Not a recognised document URL: {url}")

        jobs = []
        for url in urls:
            job = self.manager.create_job(url)
            self.manager.start(job.id, Credentials(email=email or None, passcode=passcode or None))
            jobs.append(job)
        logger.info(f"[SERVICE] Submitted {len(jobs)} job(s)")
        return jobs

    # ------------------------------------------------------------------
    # Progress stream
    # ------------------------------------------------------------------

    def status_stream(self, job_id: str) -> AsyncIterator[str]:
        """SSE frames: the current snapshot, then every event until terminal.

        Raises ``ArtifactNotFound`` / ``ArtifactExpired`` immediately for
        unknown jobs.  The subscription is taken before returning, so no
        event between the snapshot and the first read is lost.
        """
        job = self._require_job(job_id)
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.manager.subscribe(job_id, queue.put_nowait)
        return self._stream_events(job.snapshot(), queue, unsubscribe)

    @staticmethod
    async def _stream_events(
        snapshot: ProgressEvent, queue: asyncio.Queue, unsubscribe
    ) -> AsyncIterator[str]:
        try:
            yield format_sse(snapshot.to_dict(), event="progress")
            if snapshot.is_terminal:
                return
            while True:
                event = await queue.get()
                yield format_sse(event.to_dict(), event="progress")
                if event.is_terminal:
                    return
        finally:
            unsubscribe()

    # ------------------------------------------------------------------
    # Artifact retrieval
    # ------------------------------------------------------------------

    def retrieve(self, job_id: str) -> Dict[str, Any]:
        """``{"content": bytes, "filename": str}`` or an ``ArtifactError``."""
        job = self._require_job(job_id)
        if job.status is JobStatus.ERROR:
            raise ArtifactJobFailed(job_id, job.error or "")
        if job.status is not JobStatus.DONE:
            raise ArtifactNotReady(job_id)

        content = self.manager.get_artifact(job_id)
        if content is None:
            raise ArtifactExpired(job_id)
        return {
            "content": content,
            "filename": sanitize_filename(job.document_title, job_id),
        }

    def download(self, job_id: str) -> DownloadResponse:
        try:
            artifact = self.retrieve(job_id)
        except ArtifactError as e:
            logger.info(f"[SERVICE] Download {job_id[:8]}: {e.status_code} {e.message}")
            return DownloadResponse.from_error(e)

        content = artifact["content"]
        return DownloadResponse(
            status_code=200,
            body=content,
            headers={
                "Content-Type": PDF_MEDIA_TYPE,
                "Content-Disposition": f'attachment; filename="{artifact["filename"]}"',
                "Content-Length": str(len(content)),
            },
        )

    def _require_job(self, job_id: str) -> Job:
        job = self.manager.get_job(job_id)
        if job is not None:
            return job
        if self.manager.is_expired(job_id):
            raise ArtifactExpired(job_id)
        raise ArtifactNotFound(job_id)

    # ------------------------------------------------------------------
    # Inline streaming variant
    # ------------------------------------------------------------------

    def stream_extraction(
        self, url: str, email: Optional[str] = None, passcode: Optional[str] = None
    ) -> AsyncIterator[str]:
        """Run the pipeline inside the request and stream everything back.

        Frames: ``progress`` …, ``pdf-chunk`` {index, total, data} …, ``done``;
        or a single ``error`` frame.  Raises ``InvalidUrl`` before streaming.
        """
        if not is_valid_document_url(url):
            raise InvalidUrl(f"Not a recognised document URL: {url}")
        credentials = Credentials(email=email or None, passcode=passcode or None)
        return self._stream_inline(url.strip(), credentials)

    async def _stream_inline(self, url: str, credentials: Credentials) -> AsyncIterator[str]:
        queue: asyncio.Queue = asyncio.Queue()

        def on_progress(status, current_page, total_pages, document_title) -> None:
            payload = {
                "status": status.value,
                "currentPage": current_page,
                "totalPages": total_pages,
            }
            if document_title:
                payload["documentTitle"] = document_title
            queue.put_nowait(payload)

        async def run():
            try:
                return await self.manager.extractor.extract(url, credentials, on_progress)
            finally:
                queue.put_nowait(None)

        yield format_sse(
            {"status": JobStatus.SCRAPING.value, "currentPage": 0, "totalPages": 0},
            event="progress",
        )
        task = asyncio.get_running_loop().create_task(run())
        try:
            while True:
                payload = await queue.get()
                if payload is None:
                    break
                yield format_sse(payload, event="progress")

            try:
                result = task.result()
            except ExtractionError as e:
                logger.error(f"[SERVICE] Inline extraction failed: {e.message}")
                yield format_sse({"status": JobStatus.ERROR.value, "error": e.message}, event="error")
                return
            except Exception as e:
                logger.error(f"[SERVICE] Inline extraction crashed: {e}", exc_info=True)
                yield format_sse(
                    {"status": JobStatus.ERROR.value, "error": UNEXPECTED_ERROR_MESSAGE},
                    event="error",
                )
                return

            encoded = base64.b64encode(result.pdf).decode("ascii")
            chunk_size = self.config.stream_chunk_size
            total_chunks = max(1, math.ceil(len(encoded) / chunk_size))
            for index in range(total_chunks):
                yield format_sse(
                    {
                        "index": index,
                        "total": total_chunks,
                        "data": encoded[index * chunk_size:(index + 1) * chunk_size],
                    },
                    event="pdf-chunk",
                )
            yield format_sse(
                {
                    "status": JobStatus.DONE.value,
                    "totalPages": result.total_pages,
                    "documentTitle": result.document_title,
                    "filename": sanitize_filename(result.document_title, "inline00"),
                },
                event="done",
            )
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
