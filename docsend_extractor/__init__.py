"""
Gated Document Extractor
A browser-driven extractor that turns access-gated, script-rendered
documents into PDFs, with a bounded-concurrency job manager.

Usage:
    service = ExtractionService(config=ExtractorConfig.from_env())
    job = service.submit("https://docsend.com/view/abc123", email="me@corp.com")
    async for frame in service.status_stream(job.id):
        ...
    response = service.download(job.id)
"""

from .config import ExtractorConfig, configure_logging
from .errors import (
    ArtifactError,
    ArtifactExpired,
    ArtifactJobFailed,
    ArtifactNotFound,
    ArtifactNotReady,
    EmailRejected,
    EmailVerificationRequired,
    ExtractionError,
    InvalidUrl,
    MissingEmail,
    MissingPasscode,
    NoPagesRetrieved,
    PageCountUnknown,
    PageDownloadError,
)
from .models import (
    Credentials,
    ExtractionResult,
    ImageBuffer,
    Job,
    JobStatus,
    PageAsset,
    ProgressEvent,
)
from .browser import BrowserPool, BrowserSession, HttpResult, PlaywrightSession
from .auth import GateNegotiator
from .discovery import PageCountDiscoverer, parse_page_count, probe_page_count
from .fetcher import (
    BatchedAssetFetcher,
    ImageDownloader,
    download_in_batches,
    download_with_fallback,
    fetch_page_assets,
)
from .assembler import PdfAssembler
from .pipeline import DocumentExtractor
from .progress import ProgressChannel
from .store import JobStore
from .job_manager import JobManager
from .service import DownloadResponse, ExtractionService, format_sse

__all__ = [
    # Configuration
    'ExtractorConfig',
    'configure_logging',
    # Errors
    'ExtractionError',
    'InvalidUrl',
    'MissingEmail',
    'EmailRejected',
    'EmailVerificationRequired',
    'MissingPasscode',
    'PageCountUnknown',
    'NoPagesRetrieved',
    'PageDownloadError',
    'ArtifactError',
    'ArtifactNotFound',
    'ArtifactNotReady',
    'ArtifactExpired',
    'ArtifactJobFailed',
    # Data model
    'Credentials',
    'ExtractionResult',
    'ImageBuffer',
    'Job',
    'JobStatus',
    'PageAsset',
    'ProgressEvent',
    # Pipeline stages
    'BrowserPool',
    'BrowserSession',
    'HttpResult',
    'PlaywrightSession',
    'GateNegotiator',
    'PageCountDiscoverer',
    'parse_page_count',
    'probe_page_count',
    'BatchedAssetFetcher',
    'ImageDownloader',
    'download_in_batches',
    'download_with_fallback',
    'fetch_page_assets',
    'PdfAssembler',
    'DocumentExtractor',
    # Scheduling
    'ProgressChannel',
    'JobStore',
    'JobManager',
    # Service
    'DownloadResponse',
    'ExtractionService',
    'format_sse',
]

__version__ = '1.0.0'
