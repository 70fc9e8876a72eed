"""
PDF assembly: one page per image, each page the image's native pixel size.
"""

from __future__ import annotations

import logging
from typing import Sequence, Tuple

import pymupdf

logger = logging.getLogger(__name__)


def image_size(data: bytes) -> Tuple[int, int]:
    """Native pixel width and height of a PNG/JPEG buffer."""
    pix = pymupdf.Pixmap(data)
    return pix.width, pix.height


class PdfAssembler:
    """Turns an ordered sequence of PNG/JPEG buffers into one PDF."""

    def build(self, images: Sequence[bytes]) -> bytes:
        if not images:
            raise ValueError("Cannot build a PDF without images")

        doc = pymupdf.open()
        try:
            for data in images:
                width, height = image_size(data)
                page = doc.new_page(width=width, height=height)
                page.insert_image(page.rect, stream=data)
            pdf = doc.tobytes()
        finally:
            doc.close()

        logger.info(f"[PDF] Built {len(images)} pages ({len(pdf) / 1024:.0f} KB)")
        return pdf
