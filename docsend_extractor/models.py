"""
Data Model
==========
Plain data carried between the extractor stages and the job manager.

- ``Job``            — one extraction request, owned by the job store
- ``Credentials``    — optional email / passcode, lives for one pipeline call
- ``PageAsset``      — where a page's image can be downloaded from
- ``ImageBuffer``    — downloaded bytes tagged with their page index
- ``ProgressEvent``  — immutable snapshot broadcast to subscribers
- ``ExtractionResult`` — what a finished pipeline run hands back
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class JobStatus(str, Enum):
    """Lifecycle of a job: queued → scraping → building_pdf → done | error."""
    QUEUED = "queued"
    SCRAPING = "scraping"
    BUILDING_PDF = "building_pdf"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)


_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.SCRAPING: 1,
    JobStatus.BUILDING_PDF: 2,
    JobStatus.DONE: 3,
    JobStatus.ERROR: 3,
}


@dataclass
class Credentials:
    """Optional gate credentials. Never logged, never broadcast."""
    email: Optional[str] = None
    passcode: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"Credentials(email={'set' if self.email else None}, "
            f"passcode={'set' if self.passcode else None})"
        )


@dataclass
class Job:
    """One end-to-end extraction request."""
    url: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.QUEUED
    total_pages: int = 0
    current_page: int = 0
    document_title: Optional[str] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def advance(self, status: JobStatus) -> None:
        """Move to ``status``. Status never moves backwards or leaves a terminal state."""
        if self.status.is_terminal:
            raise ValueError(f"Job {self.id} already {self.status.value}")
        if _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            raise ValueError(
                f"Job {self.id} cannot go from {self.status.value} to {status.value}"
            )
        self.status = status
        if status.is_terminal:
            self.finished_at = time.time()

    def record_progress(
        self,
        current_page: int,
        total_pages: int,
        document_title: Optional[str] = None,
    ) -> None:
        self.current_page = max(self.current_page, current_page)
        if total_pages:
            self.total_pages = total_pages
        if document_title:
            self.document_title = document_title

    def snapshot(self) -> "ProgressEvent":
        return ProgressEvent(
            job_id=self.id,
            status=self.status,
            current_page=self.current_page,
            total_pages=self.total_pages,
            document_title=self.document_title,
            error=self.error,
        )


@dataclass(frozen=True)
class PageAsset:
    """Image locations for one page (1-based ``page_number``)."""
    page_number: int
    image_url: str
    fallback_url: Optional[str] = None

    @classmethod
    def from_page_data(cls, page_number: int, data: Any) -> Optional["PageAsset"]:
        """Build from a ``page_data`` JSON record; ``None`` when it has no image."""
        if not isinstance(data, dict):
            return None
        image_url = data.get("imageUrl")
        if not image_url:
            return None
        return cls(
            page_number=page_number,
            image_url=image_url,
            fallback_url=data.get("directImageUrl") or None,
        )

    @property
    def candidate_urls(self):
        urls = [self.image_url]
        if self.fallback_url and self.fallback_url != self.image_url:
            urls.append(self.fallback_url)
        return urls


@dataclass(frozen=True)
class ImageBuffer:
    """Raw image bytes for one page; ``page_index`` is 0-based."""
    page_index: int
    data: bytes


@dataclass(frozen=True)
class ProgressEvent:
    """Immutable progress snapshot. Carries no artifact bytes."""
    job_id: str
    status: JobStatus
    current_page: int = 0
    total_pages: int = 0
    document_title: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "jobId": self.job_id,
            "status": self.status.value,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
        }
        if self.document_title is not None:
            payload["documentTitle"] = self.document_title
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class ExtractionResult:
    """Output of one pipeline run."""
    pdf: bytes
    document_title: str
    total_pages: int
    page_count: int
