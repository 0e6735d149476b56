"""Batch certificate generation: one PDF per dataset row, packed into a ZIP."""

from .batch import BatchResult, ZipArchiveWriter, artifact_name, generate, generate_batch
from .errors import Diagnostic, ImageDecodeError, RowRenderError, TemplateParseError
from .fields import BoundTextField, ImageField, StaticTextField, TextStyle, load_layout

__version__ = "0.1.0"

__all__ = [
    "BatchResult",
    "BoundTextField",
    "Diagnostic",
    "ImageDecodeError",
    "ImageField",
    "RowRenderError",
    "StaticTextField",
    "TemplateParseError",
    "TextStyle",
    "ZipArchiveWriter",
    "artifact_name",
    "generate",
    "generate_batch",
    "load_layout",
]
