"""
Progress Channel
================
Per-job publish/subscribe for ``ProgressEvent`` snapshots.

Two ways to consume:
- ``subscribe(job_id, listener)`` — callback on every event, returns an
  unsubscribe handle
- ``listen(job_id)`` — async iterator backed by an ``asyncio.Queue``,
  ends after the first terminal event

Events for one job are delivered in publish order.  A failing listener
is logged and never affects the job or other listeners.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, List

from .models import ProgressEvent

logger = logging.getLogger(__name__)

Listener = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Fan-out of progress events to any number of listeners per job."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, job_id: str, listener: Listener) -> Callable[[], None]:
        self._listeners.setdefault(job_id, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(job_id)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[job_id]

        return unsubscribe

    def publish(self, event: ProgressEvent) -> None:
        for listener in list(self._listeners.get(event.job_id, ())):
            try:
                listener(event)
            except Exception as e:
                logger.debug(f"[PROGRESS] Listener error for job {event.job_id[:8]}: {e}")

    def listener_count(self, job_id: str) -> int:
        return len(self._listeners.get(job_id, ()))

    def close(self, job_id: str) -> None:
        """Drop every listener of ``job_id``."""
        self._listeners.pop(job_id, None)

    async def listen(self, job_id: str) -> AsyncIterator[ProgressEvent]:
        """Yield events for ``job_id`` until (and including) a terminal one."""
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.subscribe(job_id, queue.put_nowait)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.is_terminal:
                    return
        finally:
            unsubscribe()
