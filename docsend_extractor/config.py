"""
Extractor Configuration
=======================
Single source of truth for every extractor default and runtime limit.

The job manager, pipeline stages and browser pool all read from one
``ExtractorConfig``.  Values can be overridden in code or through
``DOCSEND_*`` environment variables (a ``.env`` file is honoured).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults
# ---------------------------------------------------------------------------
_DEFAULTS = {
    # Scheduling
    "max_concurrent_jobs": 5,
    "retention_seconds": 30 * 60,     # finished jobs are evicted after this
    "tombstone_limit": 10_000,        # evicted job ids remembered for "expired"

    # Fetching
    "image_batch_size": 10,
    "max_probe_pages": 500,
    "image_timeout_s": 30.0,

    # Authentication waits (ms)
    "landing_wait_ms": 5_000,
    "email_wait_ms": 10_000,
    "passcode_wait_ms": 10_000,
    "navigation_timeout_ms": 15_000,
    "verify_click_wait_ms": 3_000,

    # Browser
    "headless": True,
    "user_agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),

    # Streaming variant
    "stream_chunk_size": 64 * 1024,
}

_ENV_PREFIX = "DOCSEND_"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[CONFIG] Ignoring non-integer {_ENV_PREFIX}{name}={raw!r}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[CONFIG] Ignoring non-numeric {_ENV_PREFIX}{name}={raw!r}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ExtractorConfig:
    """
    Unified configuration consumed by every extractor subsystem.

    Populate via:
      - ``ExtractorConfig()``                      → all defaults
      - ``ExtractorConfig(max_concurrent_jobs=2)`` → override one value
      - ``ExtractorConfig.from_env()``             → from DOCSEND_* env vars
    """

    # ---- Scheduling ----
    max_concurrent_jobs: int = _DEFAULTS["max_concurrent_jobs"]
    retention_seconds: float = _DEFAULTS["retention_seconds"]
    tombstone_limit: int = _DEFAULTS["tombstone_limit"]

    # ---- Fetching ----
    image_batch_size: int = _DEFAULTS["image_batch_size"]
    max_probe_pages: int = _DEFAULTS["max_probe_pages"]
    image_timeout_s: float = _DEFAULTS["image_timeout_s"]

    # ---- Authentication waits ----
    landing_wait_ms: int = _DEFAULTS["landing_wait_ms"]
    email_wait_ms: int = _DEFAULTS["email_wait_ms"]
    passcode_wait_ms: int = _DEFAULTS["passcode_wait_ms"]
    navigation_timeout_ms: int = _DEFAULTS["navigation_timeout_ms"]
    verify_click_wait_ms: int = _DEFAULTS["verify_click_wait_ms"]

    # ---- Browser ----
    headless: bool = _DEFAULTS["headless"]
    user_agent: str = _DEFAULTS["user_agent"]
    executable_path: Optional[str] = None

    # ---- Streaming variant ----
    stream_chunk_size: int = _DEFAULTS["stream_chunk_size"]

    def __post_init__(self):
        if self.max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        if self.image_batch_size < 1:
            raise ValueError("image_batch_size must be at least 1")
        if self.max_probe_pages < 1:
            raise ValueError("max_probe_pages must be at least 1")
        if self.stream_chunk_size < 4:
            raise ValueError("stream_chunk_size must be at least 4")

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ExtractorConfig":
        """Build config from ``DOCSEND_*`` environment variables.

        A ``.env`` file is loaded first (``dotenv_path`` or the nearest one
        found from the working directory); real environment variables win.
        """
        load_dotenv(dotenv_path)
        return cls(
            max_concurrent_jobs=_env_int("MAX_CONCURRENT_JOBS", _DEFAULTS["max_concurrent_jobs"]),
            retention_seconds=_env_float("RETENTION_SECONDS", _DEFAULTS["retention_seconds"]),
            tombstone_limit=_env_int("TOMBSTONE_LIMIT", _DEFAULTS["tombstone_limit"]),
            image_batch_size=_env_int("IMAGE_BATCH_SIZE", _DEFAULTS["image_batch_size"]),
            max_probe_pages=_env_int("MAX_PROBE_PAGES", _DEFAULTS["max_probe_pages"]),
            image_timeout_s=_env_float("IMAGE_TIMEOUT_S", _DEFAULTS["image_timeout_s"]),
            landing_wait_ms=_env_int("LANDING_WAIT_MS", _DEFAULTS["landing_wait_ms"]),
            email_wait_ms=_env_int("EMAIL_WAIT_MS", _DEFAULTS["email_wait_ms"]),
            passcode_wait_ms=_env_int("PASSCODE_WAIT_MS", _DEFAULTS["passcode_wait_ms"]),
            navigation_timeout_ms=_env_int("NAVIGATION_TIMEOUT_MS", _DEFAULTS["navigation_timeout_ms"]),
            verify_click_wait_ms=_env_int("VERIFY_CLICK_WAIT_MS", _DEFAULTS["verify_click_wait_ms"]),
            headless=_env_bool("HEADLESS", _DEFAULTS["headless"]),
            user_agent=os.getenv(_ENV_PREFIX + "USER_AGENT") or _DEFAULTS["user_agent"],
            executable_path=os.getenv(_ENV_PREFIX + "CHROMIUM_PATH") or None,
            stream_chunk_size=_env_int("STREAM_CHUNK_SIZE", _DEFAULTS["stream_chunk_size"]),
        )

    @classmethod
    def from_cli_args(cls, args) -> "ExtractorConfig":
        """Build config from an argparse Namespace (``__main__.py``).

        Environment values are the base; flags that were given win.
        """
        cfg = cls.from_env()
        if getattr(args, "concurrency", None) is not None:
            cfg.max_concurrent_jobs = args.concurrency
        if getattr(args, "batch_size", None) is not None:
            cfg.image_batch_size = args.batch_size
        if getattr(args, "headed", False):
            cfg.headless = False
        if getattr(args, "chromium", None):
            cfg.executable_path = args.chromium
        cfg.__post_init__()
        return cfg

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("EXTRACTOR CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Concurrent jobs:  {self.max_concurrent_jobs}")
        logger.info(f"  Retention:        {self.retention_seconds:.0f}s after completion")
        logger.info(f"  Image batch:      {self.image_batch_size} downloads at once")
        logger.info(f"  Probe cap:        {self.max_probe_pages} pages")
        logger.info(f"  Image timeout:    {self.image_timeout_s}s")
        logger.info(
            f"  Auth waits:       email={self.email_wait_ms}ms "
            f"passcode={self.passcode_wait_ms}ms nav={self.navigation_timeout_ms}ms"
        )
        logger.info(f"  Headless:         {self.headless}")
        if self.executable_path:
            logger.info(f"  Chromium:         {self.executable_path}")
        logger.info("=" * 60)


def configure_logging(level: int = logging.INFO) -> None:
    """Apply the extractor's log format to the root logger."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )
