from __future__ import annotations

import io
import logging
import re
from typing import Iterable, Sequence

from PIL import Image
from pypdf import PdfReader, PdfWriter
from reportlab.lib.colors import Color
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from . import config
from .errors import Diagnostic, ImageDecodeError, TemplateParseError
from .fields import FieldDefinition, ImageField, Row, TextField, resolve_text
from .fonts import FontCache

logger = logging.getLogger(__name__)

BLACK: tuple[float, float, float] = (0.0, 0.0, 0.0)

_NAMED_COLORS = {
    "black": (0.0, 0.0, 0.0),
    "white": (1.0, 1.0, 1.0),
    "red": (1.0, 0.0, 0.0),
    "green": (0.0, 0.5, 0.0),
    "blue": (0.0, 0.0, 1.0),
    "yellow": (1.0, 1.0, 0.0),
    "gray": (0.5, 0.5, 0.5),
    "grey": (0.5, 0.5, 0.5),
}


def to_page_coordinates(
    x_percent: float,
    y_percent: float,
    page_width: float,
    page_height: float,
) -> tuple[float, float]:
    """Convert a top-left percentage position to bottom-left PDF points."""
    px = (x_percent / 100.0) * page_width
    py = page_height - (y_percent / 100.0) * page_height
    return px, py


def normalize_color(color: list | tuple, fallback: tuple[float, float, float]) -> tuple[float, float, float]:
    if len(color) != 3:
        return fallback
    try:
        channels = [float(channel) for channel in color]
    except (TypeError, ValueError):
        return fallback
    # Accept both 0-1 floats and 0-255 integers.
    if any(channel > 1.0 for channel in channels):
        channels = [channel / 255.0 for channel in channels]
    r, g, b = (max(0.0, min(1.0, channel)) for channel in channels)
    return (r, g, b)


def parse_css_color(value: str, fallback: tuple[float, float, float]) -> tuple[float, float, float]:
    s = value.strip().lower()
    if s in _NAMED_COLORS:
        return _NAMED_COLORS[s]
    hexv = s[1:] if s.startswith("#") else s
    if len(hexv) == 3:
        hexv = "".join(ch * 2 for ch in hexv)
    if len(hexv) == 6 and all(ch in "0123456789abcdef" for ch in hexv):
        return (
            int(hexv[0:2], 16) / 255.0,
            int(hexv[2:4], 16) / 255.0,
            int(hexv[4:6], 16) / 255.0,
        )
    m = re.fullmatch(r"rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)", s)
    if m:
        return (
            min(255, int(m.group(1))) / 255.0,
            min(255, int(m.group(2))) / 255.0,
            min(255, int(m.group(3))) / 255.0,
        )
    return fallback


def resolve_color(value: object) -> tuple[float, float, float]:
    if isinstance(value, str):
        return parse_css_color(value, BLACK)
    if isinstance(value, (list, tuple)):
        return normalize_color(value, BLACK)
    return BLACK


class ImageCache:
    """Raw image bytes per image field, loaded once for the whole batch."""

    def __init__(self, images: dict[str, bytes] | None = None) -> None:
        self._images: dict[str, bytes] = dict(images or {})

    @classmethod
    def from_fields(cls, fields: Iterable[FieldDefinition]) -> "ImageCache":
        return cls({f.id: bytes(f.source_bytes) for f in fields if isinstance(f, ImageField)})

    def get_image_bytes(self, field_id: str) -> bytes:
        return self._images[field_id]

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._images

    def __len__(self) -> int:
        return len(self._images)


def decode_image(data: bytes, field_id: str = "") -> Image.Image:
    """Open image bytes as PNG, then as JPEG."""
    for image_format in ("PNG", "JPEG"):
        try:
            image = Image.open(io.BytesIO(data), formats=[image_format])
            image.load()
            return image
        except (OSError, SyntaxError, ValueError):
            continue
    raise ImageDecodeError(field_id)


def _draw_text_field(
    c: canvas.Canvas,
    text_field: TextField,
    row: Row,
    px: float,
    py: float,
    font_cache: FontCache,
) -> None:
    style = text_field.style
    text = resolve_text(text_field, row)
    font = font_cache.get_font(style.font_family, style.font_style)
    text_width = font.width_of(text, style.font_size)
    c.setFont(font.name, style.font_size)
    c.setFillColor(Color(*resolve_color(style.color)))
    c.drawString(px - text_width / 2.0, py, text)


def _draw_image_field(
    c: canvas.Canvas,
    image_field: ImageField,
    px: float,
    py: float,
    page_width: float,
    page_height: float,
    image_cache: ImageCache,
) -> None:
    image = decode_image(image_cache.get_image_bytes(image_field.id), image_field.id)
    intrinsic_w, intrinsic_h = image.size
    if image_field.width_percent is not None:
        width = (image_field.width_percent / 100.0) * page_width
    else:
        width = config.DEFAULT_IMAGE_WIDTH
    if image_field.height_percent is not None:
        height = (image_field.height_percent / 100.0) * page_height
    else:
        height = width * (intrinsic_h / intrinsic_w)
    c.drawImage(
        ImageReader(image),
        px - width / 2.0,
        py - height / 2.0,
        width=width,
        height=height,
        mask="auto",
    )


def render_field(
    field: FieldDefinition,
    row: Row,
    c: canvas.Canvas,
    page_width: float,
    page_height: float,
    font_cache: FontCache,
    image_cache: ImageCache,
    diagnostics: list[Diagnostic] | None = None,
    row_index: int | None = None,
) -> None:
    """Draw one field onto the overlay canvas.

    Text is centred horizontally on the field's point with the baseline on it.
    Images are centred on both axes. An image that cannot be decoded is left
    out and recorded in ``diagnostics``.
    """
    px, py = to_page_coordinates(field.x, field.y, page_width, page_height)
    if isinstance(field, ImageField):
        try:
            _draw_image_field(c, field, px, py, page_width, page_height, image_cache)
        except (ImageDecodeError, KeyError) as exc:
            error = exc if isinstance(exc, ImageDecodeError) else ImageDecodeError(field.id, "no image data")
            logger.warning("Skipping image field %s: %s", field.id, error)
            if diagnostics is not None:
                diagnostics.append(Diagnostic.from_error(error, row_index=row_index))
        return
    _draw_text_field(c, field, row, px, py, font_cache)


def draw_overlay(
    page_width: float,
    page_height: float,
    fields: Sequence[FieldDefinition],
    row: Row,
    image_cache: ImageCache,
    diagnostics: list[Diagnostic] | None = None,
    row_index: int | None = None,
) -> bytes:
    packet = io.BytesIO()
    c = canvas.Canvas(packet, pagesize=(page_width, page_height))
    font_cache = FontCache()
    for field in fields:
        c.saveState()
        render_field(
            field,
            row,
            c,
            page_width,
            page_height,
            font_cache,
            image_cache,
            diagnostics=diagnostics,
            row_index=row_index,
        )
        c.restoreState()
    c.showPage()
    c.save()
    return packet.getvalue()


def open_template(template_bytes: bytes) -> PdfReader:
    """Parse template bytes into a fresh reader, or raise TemplateParseError."""
    if not template_bytes:
        raise TemplateParseError("Template is empty.")
    try:
        reader = PdfReader(io.BytesIO(template_bytes))
        if reader.is_encrypted and not reader.decrypt(""):
            raise TemplateParseError("Template is encrypted.")
        page_count = len(reader.pages)
    except TemplateParseError:
        raise
    except Exception as exc:
        raise TemplateParseError(f"Template is not a readable PDF: {exc}") from exc
    if page_count == 0:
        raise TemplateParseError("Template has no pages.")
    return reader


def template_page_size(reader: PdfReader) -> tuple[float, float]:
    page = reader.pages[0]
    return float(page.mediabox.width), float(page.mediabox.height)


def render_certificate(
    template_bytes: bytes,
    fields: Sequence[FieldDefinition],
    row: Row,
    image_cache: ImageCache,
    diagnostics: list[Diagnostic] | None = None,
    row_index: int | None = None,
) -> bytes:
    """Render one certificate from a freshly parsed copy of the template.

    Fields go on the first page; any further pages are copied unchanged.
    """
    reader = open_template(template_bytes)
    writer = PdfWriter()
    for i, page in enumerate(reader.pages):
        if i == 0:
            page_w = float(page.mediabox.width)
            page_h = float(page.mediabox.height)
            overlay_bytes = draw_overlay(
                page_width=page_w,
                page_height=page_h,
                fields=fields,
                row=row,
                image_cache=image_cache,
                diagnostics=diagnostics,
                row_index=row_index,
            )
            overlay_page = PdfReader(io.BytesIO(overlay_bytes)).pages[0]
            page.merge_page(overlay_page)
        writer.add_page(page)

    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()
