"""
Error taxonomy for the extractor.

Job-fatal errors derive from ``ExtractionError``; their messages are the
only error text ever shown to progress subscribers.  Retrieval errors
derive from ``ArtifactError`` and carry the HTTP-style status code the
download interface answers with.
"""

from __future__ import annotations


class ExtractionError(RuntimeError):
    """Base class for errors that abort an extraction job."""

    code = "extraction_failed"
    default_message = "Extraction failed."

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidUrl(ExtractionError):
    code = "invalid_url"
    default_message = "Not a recognised document URL."


# -- authentication stage ---------------------------------------------------

class MissingEmail(ExtractionError):
    code = "missing_email"
    default_message = "This document requires an email address."


class EmailRejected(ExtractionError):
    code = "email_rejected"
    default_message = "The email address was rejected. Please use a valid email."


class EmailVerificationRequired(ExtractionError):
    code = "email_verification_required"
    default_message = (
        "The document requires email verification. Confirm the link sent "
        "to your inbox, then submit the document again."
    )


class MissingPasscode(ExtractionError):
    code = "missing_passcode"
    default_message = "This document requires a passcode."


# -- discovery / fetch stages -----------------------------------------------

class PageCountUnknown(ExtractionError):
    code = "page_count_unknown"
    default_message = (
        "Could not determine the page count. The passcode may be wrong "
        "or the link may be invalid."
    )


class NoPagesRetrieved(ExtractionError):
    code = "no_pages_retrieved"
    default_message = "No pages could be downloaded."


class PageDownloadError(RuntimeError):
    """A single page could not be downloaded. Never fatal to the job."""

    def __init__(self, page_number: int, reason: str = ""):
        self.page_number = page_number
        detail = f": {reason}" if reason else ""
        super().__init__(f"Page {page_number} download failed{detail}")


# -- artifact retrieval -----------------------------------------------------

class ArtifactError(LookupError):
    """Base for artifact retrieval failures."""

    status_code = 500
    default_message = "Artifact unavailable."

    def __init__(self, job_id: str, message: str = ""):
        self.job_id = job_id
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ArtifactNotFound(ArtifactError):
    status_code = 404
    default_message = "Job not found."


class ArtifactNotReady(ArtifactError):
    status_code = 409
    default_message = "Document is not ready yet."


class ArtifactExpired(ArtifactError):
    status_code = 410
    default_message = "Document is no longer available (expired)."


class ArtifactJobFailed(ArtifactError):
    status_code = 422
    default_message = "Job failed."
