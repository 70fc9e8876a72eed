"""
Utility Functions
URL validation and normalisation, per-page data URLs, title and filename helpers.
"""

import re
from typing import Optional
from urllib.parse import urlparse

# <host>.docsend.<tld>/view/<id>  or  /v/<space>/<id>
_DOCUMENT_URL_RE = re.compile(
    r"docsend\.[a-z]{2,}(?:\.[a-z]{2,})?/(?:view|v/[a-zA-Z0-9]+)/[a-zA-Z0-9]+",
    re.IGNORECASE,
)

# Characters kept in a download filename; everything else becomes "_"
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9_\-. ]")

_TITLE_SUFFIX_RE = re.compile(r"\s*\|\s*DocSend$", re.IGNORECASE)


def is_valid_document_url(url: str) -> bool:
    """
    Check if a URL has the shape of a gated document link.

    Args:
        url: URL to check (scheme optional)

    Returns:
        True if the URL points at a document view
    """
    if not url or not isinstance(url, str):
        return False
    return bool(_DOCUMENT_URL_RE.search(url.strip()))


def normalize_document_url(url: str) -> str:
    """Add a missing scheme and strip the trailing slash."""
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"
    return url.rstrip("/")


def page_data_url(base_url: str, page_number: int) -> str:
    """URL of the JSON record for a 1-based page number."""
    return f"{base_url.rstrip('/')}/page_data/{page_number}"


def referer_for(url: str) -> str:
    """Origin root of ``url``, used as the Referer on CDN image requests."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "https://docsend.com/"
    return f"{parsed.scheme}://{parsed.netloc}/"


def clean_document_title(raw_title: Optional[str]) -> str:
    """Strip the site suffix from a page title."""
    title = _TITLE_SUFFIX_RE.sub("", (raw_title or "").strip()).strip()
    if not title or title.lower() == "docsend":
        return "Document"
    return title


def sanitize_filename(title: Optional[str], job_id: str, extension: str = ".pdf") -> str:
    """Build a download filename from a document title."""
    if title:
        safe = _UNSAFE_FILENAME_RE.sub("_", title).strip()
        if safe:
            return f"{safe}{extension}"
    return f"document-{job_id[:8]}{extension}"
