from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from reportlab.pdfbase import pdfmetrics

logger = logging.getLogger(__name__)


class FontFamily(str, Enum):
    HELVETICA = "Helvetica"
    TIMES_ROMAN = "Times-Roman"
    COURIER = "Courier"


class FontStyle(str, Enum):
    NORMAL = "Normal"
    BOLD = "Bold"
    ITALIC = "Italic"
    BOLD_ITALIC = "BoldItalic"


DEFAULT_FAMILY = FontFamily.HELVETICA
DEFAULT_STYLE = FontStyle.NORMAL

FONT_FACES: dict[FontFamily, dict[FontStyle, str]] = {
    FontFamily.HELVETICA: {
        FontStyle.NORMAL: "Helvetica",
        FontStyle.BOLD: "Helvetica-Bold",
        FontStyle.ITALIC: "Helvetica-Oblique",
        FontStyle.BOLD_ITALIC: "Helvetica-BoldOblique",
    },
    FontFamily.TIMES_ROMAN: {
        FontStyle.NORMAL: "Times-Roman",
        FontStyle.BOLD: "Times-Bold",
        FontStyle.ITALIC: "Times-Italic",
        FontStyle.BOLD_ITALIC: "Times-BoldItalic",
    },
    FontFamily.COURIER: {
        FontStyle.NORMAL: "Courier",
        FontStyle.BOLD: "Courier-Bold",
        FontStyle.ITALIC: "Courier-Oblique",
        FontStyle.BOLD_ITALIC: "Courier-BoldOblique",
    },
}

DEFAULT_FACE = FONT_FACES[DEFAULT_FAMILY][DEFAULT_STYLE]


def resolve_font_face(family: str | None, style: str | None) -> str:
    """Map a (family, style) pair to a base-14 face, falling back to Helvetica."""
    try:
        return FONT_FACES[FontFamily(family)][FontStyle(style)]
    except ValueError:
        logger.debug("Font %r/%r is not in the font table; using %s.", family, style, DEFAULT_FACE)
        return DEFAULT_FACE


@dataclass(frozen=True)
class FontHandle:
    name: str

    def width_of(self, text: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, self.name, size)


class FontCache:
    """Font lookups for a single output document.

    Create one per rendered certificate and drop it once the document is
    serialized.
    """

    def __init__(self) -> None:
        self._fonts: dict[tuple[str | None, str | None], FontHandle] = {}

    def get_font(self, family: str | None, style: str | None) -> FontHandle:
        key = (family, style)
        handle = self._fonts.get(key)
        if handle is None:
            handle = FontHandle(resolve_font_face(family, style))
            self._fonts[key] = handle
        return handle

    def __len__(self) -> int:
        return len(self._fonts)
