from __future__ import annotations

import io

import pytest
from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def make_template(pages: int = 1, pagesize: tuple[float, float] = letter) -> bytes:
    packet = io.BytesIO()
    c = canvas.Canvas(packet, pagesize=pagesize)
    width, height = pagesize
    for _ in range(pages):
        c.setLineWidth(2)
        c.rect(20, 20, width - 40, height - 40)
        c.showPage()
    c.save()
    return packet.getvalue()


def make_image(image_format: str, size: tuple[int, int]) -> bytes:
    mode = "RGBA" if image_format == "PNG" else "RGB"
    buf = io.BytesIO()
    Image.new(mode, size, (200, 30, 30)).save(buf, image_format)
    return buf.getvalue()


class RecordingCanvas:
    """Stands in for a reportlab canvas and records draw calls."""

    def __init__(self) -> None:
        self.font: tuple[str, float] | None = None
        self.fill = None
        self.strings: list[tuple[float, float, str]] = []
        self.images: list[dict] = []

    def setFont(self, name: str, size: float) -> None:
        self.font = (name, size)

    def setFillColor(self, color) -> None:
        self.fill = color

    def drawString(self, x: float, y: float, text: str) -> None:
        self.strings.append((x, y, text))

    def drawImage(self, image, x: float, y: float, width: float, height: float, mask=None) -> None:
        self.images.append({"x": x, "y": y, "width": width, "height": height})


@pytest.fixture
def template_bytes() -> bytes:
    return make_template()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image("PNG", (20, 10))


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image("JPEG", (40, 20))


@pytest.fixture
def recording_canvas() -> RecordingCanvas:
    return RecordingCanvas()
