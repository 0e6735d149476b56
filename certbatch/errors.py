from __future__ import annotations

from dataclasses import dataclass


class CertBatchError(Exception):
    """Base class for certificate generation errors."""


class TemplateParseError(CertBatchError):
    """The template bytes could not be opened as a PDF with at least one page."""


class RowRenderError(CertBatchError):
    def __init__(self, row_index: int, row_name: str, message: str) -> None:
        super().__init__(f"Row {row_index + 1} ({row_name}): {message}")
        self.row_index = row_index
        self.row_name = row_name


class ImageDecodeError(CertBatchError):
    def __init__(self, field_id: str, message: str = "image is neither PNG nor JPEG") -> None:
        super().__init__(f"Image field '{field_id}': {message}")
        self.field_id = field_id


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable problem recorded during a batch run."""

    kind: str
    message: str
    row_index: int | None = None
    field_id: str | None = None

    @classmethod
    def from_error(cls, error: CertBatchError, row_index: int | None = None) -> "Diagnostic":
        return cls(
            kind=type(error).__name__,
            message=str(error),
            row_index=getattr(error, "row_index", row_index),
            field_id=getattr(error, "field_id", None),
        )
