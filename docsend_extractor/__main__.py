#!/usr/bin/env python3
"""
Command-line extractor
======================
Submits one or more document links to the job manager, prints progress
per job and writes every finished PDF into an output directory.

Configuration flows through ``ExtractorConfig`` (``DOCSEND_*`` env vars,
``.env``), with flags overriding.

Run with: python -m docsend_extractor https://docsend.com/view/abc123
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from .config import ExtractorConfig, configure_logging
from .errors import ArtifactError, InvalidUrl
from .job_manager import JobManager
from .models import JobStatus, ProgressEvent
from .service import ExtractionService

logger = logging.getLogger(__name__)


def _print_progress(event: ProgressEvent) -> None:
    label = event.document_title or event.job_id[:8]
    if event.status is JobStatus.ERROR:
        print(f"[{label}] error: {event.error}")
    elif event.total_pages:
        print(f"[{label}] {event.status.value} {event.current_page}/{event.total_pages}")
    else:
        print(f"[{label}] {event.status.value}")


async def _run(args, cfg: ExtractorConfig, service: ExtractionService = None) -> int:
    service = service or ExtractionService(JobManager(config=cfg))
    try:
        jobs = service.submit_many(args.urls, email=args.email, passcode=args.passcode)
    except InvalidUrl as e:
        print(f"Error: {e.message}")
        return 2

    for job in jobs:
        service.manager.subscribe(job.id, _print_progress)
        # jobs were admitted before subscribing; show where each one stands
        _print_progress(job.snapshot())

    try:
        await service.manager.join()
    finally:
        await service.manager.close()

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    failures = 0
    print("\n" + "=" * 60)
    for job in jobs:
        try:
            artifact = service.retrieve(job.id)
        except ArtifactError as e:
            failures += 1
            print(f"  FAILED  {job.url}\n          {e.message}")
            continue
        path = out_dir / artifact["filename"]
        path.write_bytes(artifact["content"])
        print(f"  SAVED   {path} ({job.total_pages} pages)")
    print("=" * 60)
    return 1 if failures else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='Gated document extractor - save access-gated documents as PDF',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m docsend_extractor https://docsend.com/view/abc123
  python -m docsend_extractor https://docsend.com/view/abc123 --email me@corp.com
  python -m docsend_extractor URL1 URL2 --passcode s3cret --out-dir decks/
        """
    )
    parser.add_argument('urls', nargs='+', help='Document links to extract')
    parser.add_argument('--email', type=str, help='Email for email-gated documents')
    parser.add_argument('--passcode', type=str, help='Passcode for passcode-gated documents')
    parser.add_argument('--out-dir', type=str, default='.', help='Where PDFs are written (default: .)')
    parser.add_argument('--concurrency', type=int, help='Jobs running at once (default: 5)')
    parser.add_argument('--batch-size', type=int, help='Images downloaded at once (default: 10)')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('--chromium', type=str, metavar='PATH', help='Chromium executable to use')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        cfg = ExtractorConfig.from_cli_args(args)
    except ValueError as e:
        parser.error(str(e))
    cfg.log_summary()

    start_time = time.time()
    exit_code = asyncio.run(_run(args, cfg))
    logger.info(f"Finished in {time.time() - start_time:.1f}s")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
