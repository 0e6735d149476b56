from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from typing import Callable, Sequence

from . import config
from .errors import Diagnostic, ImageDecodeError, RowRenderError
from .fields import FieldDefinition, Row, stringify_value
from .overlay import ImageCache, open_template, render_certificate

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
StopCheck = Callable[[], bool]

_UNSAFE_NAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


class ZipArchiveWriter:
    """In-memory ZIP assembly: create once, add files, finalize once."""

    def __init__(self) -> None:
        self._buffer: io.BytesIO | None = None
        self._zip: zipfile.ZipFile | None = None
        self._names: set[str] = set()
        self._finalized = False

    def create_archive(self) -> None:
        if self._zip is not None or self._finalized:
            raise RuntimeError("Archive has already been created.")
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self._buffer, "w", zipfile.ZIP_DEFLATED)

    def _unique_name(self, name: str) -> str:
        if name not in self._names:
            return name
        stem, dot, ext = name.rpartition(".")
        if not dot:
            stem, ext = name, ""
        counter = 2
        while True:
            candidate = f"{stem}_{counter}.{ext}" if dot else f"{stem}_{counter}"
            if candidate not in self._names:
                return candidate
            counter += 1

    def add_file(self, name: str, data: bytes) -> str:
        """Add one file and return the name it was stored under."""
        if self._zip is None:
            raise RuntimeError("Call create_archive() before add_file().")
        stored_name = self._unique_name(name)
        self._zip.writestr(stored_name, data)
        self._names.add(stored_name)
        return stored_name

    def finalize(self) -> bytes:
        if self._zip is None or self._buffer is None:
            raise RuntimeError("Call create_archive() before finalize().")
        self._zip.close()
        self._zip = None
        self._finalized = True
        return self._buffer.getvalue()


def sanitize_name(name: str) -> str:
    cleaned = _UNSAFE_NAME_CHARS.sub("_", name).strip().strip(".")
    return cleaned


def artifact_name(row: Row, index: int) -> str:
    """Name for the certificate of row ``index`` (0-based), without extension."""
    for column in config.NAME_COLUMNS:
        value = sanitize_name(stringify_value(row.get(column)))
        if value:
            return value
    return f"certificate_{index + 1}"


@dataclass
class BatchResult:
    archive: bytes
    total_rows: int
    artifacts: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    cancelled: bool = False

    @property
    def generated(self) -> int:
        return len(self.artifacts)

    @property
    def failed_rows(self) -> list[int]:
        return [d.row_index for d in self.diagnostics if d.kind == RowRenderError.__name__]

    @property
    def skipped_fields(self) -> int:
        return sum(1 for d in self.diagnostics if d.kind == ImageDecodeError.__name__)

    def summary(self) -> str:
        text = (
            f"{self.generated} of {self.total_rows} certificates generated, "
            f"{self.skipped_fields} fields skipped"
        )
        if self.cancelled:
            text += " (cancelled)"
        return text


def generate_batch(
    template_bytes: bytes,
    fields: Sequence[FieldDefinition],
    rows: Sequence[Row],
    on_progress: ProgressCallback | None = None,
    should_stop: StopCheck | None = None,
    archive_writer: ZipArchiveWriter | None = None,
) -> BatchResult:
    """Render one certificate per row and collect them into a ZIP archive.

    The template is checked before any row is processed, so an unreadable
    template raises ``TemplateParseError`` and no archive is produced. A row
    that fails to render is recorded as a ``RowRenderError`` diagnostic and
    left out of the archive; the remaining rows are still processed.
    Progress is reported after every row, including failed ones, so the last
    value is exactly 100.

    ``should_stop`` is checked before each row. Once it returns true no more
    rows are started and the archive holds the certificates finished so far.
    """
    open_template(template_bytes)
    image_cache = ImageCache.from_fields(fields)

    writer = archive_writer or ZipArchiveWriter()
    writer.create_archive()

    total = len(rows)
    artifacts: list[str] = []
    diagnostics: list[Diagnostic] = []
    cancelled = False
    logger.info("Generating %d certificate(s) with %d field(s)", total, len(fields))

    for index, row in enumerate(rows):
        if should_stop is not None and should_stop():
            logger.info("Batch stopped before row %d of %d", index + 1, total)
            cancelled = True
            break

        name = artifact_name(row, index)
        try:
            pdf_bytes = render_certificate(
                template_bytes,
                fields,
                row,
                image_cache,
                diagnostics=diagnostics,
                row_index=index,
            )
        except Exception as exc:
            logger.exception("Failed to render row %d (%s)", index + 1, name)
            error = RowRenderError(index, name, str(exc) or type(exc).__name__)
            diagnostics.append(Diagnostic.from_error(error))
        else:
            stored = writer.add_file(name + config.ARTIFACT_EXTENSION, pdf_bytes)
            artifacts.append(stored)

        if on_progress is not None:
            on_progress((index + 1) / total * 100.0)

    archive = writer.finalize()
    result = BatchResult(
        archive=archive,
        total_rows=total,
        artifacts=artifacts,
        diagnostics=diagnostics,
        cancelled=cancelled,
    )
    logger.info("Batch finished: %s", result.summary())
    return result


def generate(
    template_bytes: bytes,
    fields: Sequence[FieldDefinition],
    rows: Sequence[Row],
    on_progress: ProgressCallback | None = None,
) -> bytes:
    """Generate the archive and log any recoverable problems."""
    result = generate_batch(template_bytes, fields, rows, on_progress=on_progress)
    for diagnostic in result.diagnostics:
        logger.warning("%s: %s", diagnostic.kind, diagnostic.message)
    return result.archive
