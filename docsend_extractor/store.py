"""
Job Store
=========
Owned state for the job manager: job registry, finished artifacts,
progress channel and the ids of evicted jobs.

Create one per manager (tests create their own).  Eviction removes the
job, its artifact and its listeners in one step and leaves a tombstone
so retrieval can answer "expired" instead of "not found".
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from .models import Job
from .progress import ProgressChannel

logger = logging.getLogger(__name__)


class JobStore:
    def __init__(self, tombstone_limit: int = 10_000):
        self.channel = ProgressChannel()
        self._jobs: Dict[str, Job] = {}
        self._artifacts: Dict[str, bytes] = {}
        self._evicted: "OrderedDict[str, float]" = OrderedDict()
        self._tombstone_limit = tombstone_limit

    def add(self, job: Job) -> Job:
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def jobs(self) -> List[Job]:
        return list(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)

    def put_artifact(self, job_id: str, data: bytes) -> None:
        if job_id not in self._jobs:
            raise KeyError(job_id)
        self._artifacts[job_id] = data

    def get_artifact(self, job_id: str) -> Optional[bytes]:
        return self._artifacts.get(job_id)

    def was_evicted(self, job_id: str) -> bool:
        return job_id in self._evicted

    def evict(self, job_id: str, when: float = 0.0) -> bool:
        """Remove a job with its artifact and listeners. False if unknown."""
        job = self._jobs.pop(job_id, None)
        self._artifacts.pop(job_id, None)
        self.channel.close(job_id)
        if job is None:
            return False

        self._evicted[job_id] = when
        while len(self._evicted) > self._tombstone_limit:
            self._evicted.popitem(last=False)
        logger.info(f"[JOBS] Evicted job {job_id[:8]}")
        return True
