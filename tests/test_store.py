"""
Tests for the job store and progress channel.
"""

import asyncio

import pytest

from docsend_extractor.models import Job, JobStatus, ProgressEvent
from docsend_extractor.progress import ProgressChannel
from docsend_extractor.store import JobStore

from fakes import DOC_URL


def _event(job_id, status=JobStatus.SCRAPING, page=0):
    return ProgressEvent(job_id=job_id, status=status, current_page=page, total_pages=3)


class TestProgressChannel:

    def test_fan_out_in_order(self):
        channel = ProgressChannel()
        a, b = [], []
        channel.subscribe("j1", a.append)
        channel.subscribe("j1", b.append)
        channel.publish(_event("j1", page=1))
        channel.publish(_event("j1", page=2))
        assert [e.current_page for e in a] == [1, 2]
        assert a == b

    def test_jobs_are_isolated(self):
        channel = ProgressChannel()
        seen = []
        channel.subscribe("j1", seen.append)
        channel.publish(_event("j2"))
        assert seen == []

    def test_unsubscribe_is_idempotent(self):
        channel = ProgressChannel()
        unsubscribe = channel.subscribe("j1", lambda e: None)
        unsubscribe()
        unsubscribe()
        assert channel.listener_count("j1") == 0

    def test_listen_ends_after_terminal(self):
        channel = ProgressChannel()

        async def scenario():
            received = []

            async def consume():
                async for event in channel.listen("j1"):
                    received.append(event.status)

            task = asyncio.ensure_future(consume())
            await asyncio.sleep(0)
            channel.publish(_event("j1"))
            channel.publish(_event("j1", JobStatus.DONE, 3))
            channel.publish(_event("j1", JobStatus.DONE, 3))
            await asyncio.wait_for(task, 1)
            return received

        assert asyncio.run(scenario()) == [JobStatus.SCRAPING, JobStatus.DONE]
        assert channel.listener_count("j1") == 0


class TestJobStore:

    def test_artifact_requires_known_job(self):
        with pytest.raises(KeyError):
            JobStore().put_artifact("ghost", b"%PDF")

    def test_evict_removes_everything_and_leaves_tombstone(self):
        store = JobStore()
        job = store.add(Job(url=DOC_URL))
        store.put_artifact(job.id, b"%PDF")
        store.channel.subscribe(job.id, lambda e: None)

        assert store.evict(job.id)
        assert store.get(job.id) is None
        assert store.get_artifact(job.id) is None
        assert store.channel.listener_count(job.id) == 0
        assert store.was_evicted(job.id)
        assert not store.evict(job.id)

    def test_tombstones_are_bounded(self):
        store = JobStore(tombstone_limit=2)
        jobs = [store.add(Job(url=DOC_URL)) for _ in range(3)]
        for job in jobs:
            store.evict(job.id)
        assert not store.was_evicted(jobs[0].id)
        assert store.was_evicted(jobs[1].id)
        assert store.was_evicted(jobs[2].id)
