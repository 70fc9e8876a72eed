"""
Job Manager
===========
Queues, runs and tracks extraction jobs with a global concurrency ceiling.

Architecture:
- At most ``max_concurrent_jobs`` pipelines run at once; the rest wait
  in a FIFO queue with the credentials they were submitted with
- A finished job (success or failure) frees its slot and immediately
  admits the next queued job
- Every status change and fetch batch is broadcast as a ``ProgressEvent``
- Terminal jobs are evicted (job + artifact + listeners) after
  ``retention_seconds``

All state lives in a ``JobStore`` and is only touched from the event
loop thread, so no locking is needed.  There is no cancellation of
running jobs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

from .config import ExtractorConfig
from .errors import ExtractionError
from .models import Credentials, Job, JobStatus, ProgressEvent
from .pipeline import DocumentExtractor
from .store import JobStore

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Unexpected error during extraction."


class JobManager:
    """
    Bounded-concurrency scheduler for extraction jobs.

    Usage::

        manager = JobManager(config=ExtractorConfig())
        job = manager.create_job("https://docsend.com/view/abc123")
        unsubscribe = manager.subscribe(job.id, print)
        manager.start(job.id, Credentials(passcode="s3cret"))
        ...
        pdf = manager.get_artifact(job.id)
    """

    def __init__(
        self,
        extractor: Optional[DocumentExtractor] = None,
        config: Optional[ExtractorConfig] = None,
        store: Optional[JobStore] = None,
    ):
        self.config = config or getattr(extractor, "config", None) or ExtractorConfig()
        self.extractor = extractor or DocumentExtractor(self.config)
        self.store = store or JobStore(tombstone_limit=self.config.tombstone_limit)

        self._running = 0
        self._waiting: Deque[Tuple[str, Credentials]] = deque()
        self._tasks: Set[asyncio.Task] = set()
        self._evictions: Dict[str, asyncio.TimerHandle] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_job(self, url: str) -> Job:
        job = self.store.add(Job(url=url))
        logger.info(f"[JOBS] Created job {job.id[:8]} for {url[:80]}")
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def start(self, job_id: str, credentials: Optional[Credentials] = None) -> None:
        """Run the job now, or queue it when the ceiling is reached.

        Must be called from a running event loop; returns immediately.
        """
        job = self.store.get(job_id)
        if job is None:
            raise KeyError(job_id)
        if job.status is not JobStatus.QUEUED or self._is_waiting(job_id):
            raise ValueError(f"Job {job_id} was already started")

        credentials = credentials or Credentials()
        if self._running < self.config.max_concurrent_jobs:
            self._launch(job, credentials)
        else:
            self._waiting.append((job_id, credentials))
            logger.info(
                f"[JOBS] Job {job_id[:8]} queued "
                f"(running={self._running}, waiting={len(self._waiting)})"
            )

    def subscribe(
        self, job_id: str, listener: Callable[[ProgressEvent], None]
    ) -> Callable[[], None]:
        """Register ``listener`` for a live job. Raises ``KeyError`` for unknown or evicted ids."""
        if self.store.get(job_id) is None:
            raise KeyError(job_id)
        return self.store.channel.subscribe(job_id, listener)

    def get_artifact(self, job_id: str) -> Optional[bytes]:
        return self.store.get_artifact(job_id)

    def is_expired(self, job_id: str) -> bool:
        return self.store.was_evicted(job_id)

    @property
    def running_count(self) -> int:
        return self._running

    @property
    def queued_job_ids(self) -> List[str]:
        return [job_id for job_id, _ in self._waiting]

    async def join(self) -> None:
        """Wait until no job is running or waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Wait for running jobs, drop pending evictions, close the browser."""
        await self.join()
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()
        await self.extractor.close()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _is_waiting(self, job_id: str) -> bool:
        return any(waiting_id == job_id for waiting_id, _ in self._waiting)

    def _launch(self, job: Job, credentials: Credentials) -> None:
        self._running += 1
        job.advance(JobStatus.SCRAPING)
        self._publish(job)
        logger.info(f"[JOBS] Job {job.id[:8]} started (running={self._running})")

        task = asyncio.get_running_loop().create_task(self._run(job, credentials))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _admit_waiting(self) -> None:
        while self._running < self.config.max_concurrent_jobs and self._waiting:
            job_id, credentials = self._waiting.popleft()
            job = self.store.get(job_id)
            if job is None or job.status is not JobStatus.QUEUED:
                continue
            self._launch(job, credentials)

    async def _run(self, job: Job, credentials: Credentials) -> None:
        try:
            result = await self.extractor.extract(
                job.url,
                credentials,
                on_progress=lambda status, current, total, title: self._on_progress(
                    job, status, current, total, title
                ),
            )
        except ExtractionError as e:
            logger.error(f"[JOBS] Job {job.id[:8]} failed: {e.message}")
            self._fail(job, e.message)
        except Exception as e:
            logger.error(f"[JOBS] Job {job.id[:8]} crashed: {e}", exc_info=True)
            self._fail(job, UNEXPECTED_ERROR_MESSAGE)
        else:
            self.store.put_artifact(job.id, result.pdf)
            job.record_progress(result.total_pages, result.total_pages, result.document_title)
            job.advance(JobStatus.DONE)
            self._publish(job)
            logger.info(
                f"[JOBS] Job {job.id[:8]} done: {result.page_count}/{result.total_pages} pages"
            )
        finally:
            self._running -= 1
            if job.status.is_terminal:
                self._schedule_eviction(job.id)
            self._admit_waiting()

    def _on_progress(
        self,
        job: Job,
        status: JobStatus,
        current_page: int,
        total_pages: int,
        document_title: Optional[str],
    ) -> None:
        job.advance(status)
        job.record_progress(current_page, total_pages, document_title)
        self._publish(job)

    def _fail(self, job: Job, message: str) -> None:
        job.error = message
        job.advance(JobStatus.ERROR)
        self._publish(job)

    def _publish(self, job: Job) -> None:
        self.store.channel.publish(job.snapshot())

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def _schedule_eviction(self, job_id: str) -> None:
        loop = asyncio.get_running_loop()
        self._evictions[job_id] = loop.call_later(
            self.config.retention_seconds, self._evict, job_id
        )

    def _evict(self, job_id: str) -> None:
        self._evictions.pop(job_id, None)
        self.store.evict(job_id, when=time.time())
