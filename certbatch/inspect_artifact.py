"""Read back generated certificates with PyMuPDF.

Useful for calibrating a layout: every placed text span is reported in PDF
points with a bottom-left origin, the same space fields are drawn in.
"""

from __future__ import annotations

import io
import zipfile
from typing import Iterator

import fitz


def to_bottom_left_bbox(bbox: list[float], page_h: float) -> list[float]:
    x0, y0, x1, y1 = bbox
    return [x0, page_h - y1, x1, page_h - y0]


def to_bottom_left_point(x: float, y: float, page_h: float) -> list[float]:
    return [x, page_h - y]


def iter_spans(page: fitz.Page) -> Iterator[dict]:
    data = page.get_text("dict")
    for block in data.get("blocks", []):
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                yield span


def count_images(pdf_bytes: bytes, page_index: int = 0) -> int:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        if page_index < 0 or page_index >= len(doc):
            raise IndexError(f"Page {page_index} out of range. PDF has {len(doc)} page(s).")
        return len(doc[page_index].get_images(full=True))


def extract_text_spans(
    pdf_bytes: bytes,
    page_index: int = 0,
    contains: str | None = None,
) -> list[dict]:
    needle = contains.lower() if contains else None
    items: list[dict] = []
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        if page_index < 0 or page_index >= len(doc):
            raise IndexError(f"Page {page_index} out of range. PDF has {len(doc)} page(s).")
        page = doc[page_index]
        page_h = float(page.rect.height)
        for span in iter_spans(page):
            text = (span.get("text") or "").strip()
            if not text:
                continue
            if needle and needle not in text.lower():
                continue
            origin = span.get("origin")
            items.append(
                {
                    "text": text,
                    "font": span.get("font"),
                    "size": span.get("size"),
                    "bbox_bottom_left": to_bottom_left_bbox(list(span.get("bbox", [0, 0, 0, 0])), page_h),
                    "origin_bottom_left": to_bottom_left_point(origin[0], origin[1], page_h) if origin else None,
                }
            )
    return items


def read_archive(archive_bytes: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(archive_bytes)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}
