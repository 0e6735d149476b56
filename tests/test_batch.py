from __future__ import annotations

import io
import zipfile

import pytest

from certbatch import batch
from certbatch.batch import ZipArchiveWriter, artifact_name, generate, generate_batch
from certbatch.errors import TemplateParseError
from certbatch.fields import BoundTextField, ImageField, StaticTextField
from certbatch.inspect_artifact import count_images, extract_text_spans, read_archive


def span_texts(pdf_bytes: bytes) -> set[str]:
    return {span["text"] for span in extract_text_spans(pdf_bytes)}


@pytest.fixture
def layout() -> list:
    return [
        StaticTextField(id="title", x=50, y=20, content="Certificate of Completion"),
        BoundTextField(id="name", x=50, y=45, binding_key="Name", content="Student Name"),
    ]


def test_zero_rows_give_empty_archive(template_bytes: bytes, layout: list) -> None:
    calls: list[float] = []
    result = generate_batch(template_bytes, layout, [], on_progress=calls.append)
    assert calls == []
    assert result.generated == 0
    with zipfile.ZipFile(io.BytesIO(result.archive)) as archive:
        assert archive.namelist() == []


def test_progress_is_monotonic_and_ends_at_100(template_bytes: bytes, layout: list) -> None:
    calls: list[float] = []
    rows = [{"Name": "Ana"}, {"Name": "Luis"}, {"Name": "Mia"}]
    generate_batch(template_bytes, layout, rows, on_progress=calls.append)
    assert len(calls) == 3
    assert calls == sorted(calls)
    assert calls[-1] == 100.0


def test_rows_are_rendered_independently(template_bytes: bytes, layout: list) -> None:
    result = generate_batch(template_bytes, layout, [{"Name": "Ana"}, {"Name": "Luis"}])
    files = read_archive(result.archive)
    assert list(files) == ["Ana.pdf", "Luis.pdf"]
    assert span_texts(files["Ana.pdf"]) == {"Certificate of Completion", "Ana"}
    assert span_texts(files["Luis.pdf"]) == {"Certificate of Completion", "Luis"}


def test_missing_column_renders_nothing_for_the_field(template_bytes: bytes) -> None:
    fields = [BoundTextField(id="course", x=50, y=50, binding_key="Course", content="Course Duration")]
    result = generate_batch(template_bytes, fields, [{"Name": "Ana"}])
    assert result.diagnostics == []
    assert span_texts(read_archive(result.archive)["Ana.pdf"]) == set()


@pytest.mark.parametrize(
    ("row", "index", "expected"),
    [
        ({"Nombre": "Ana"}, 0, "Ana"),
        ({"Name": "Luis", "Nombre": "Ana", "name": "x"}, 0, "Luis"),
        ({"Name": "", "name": "mia"}, 0, "mia"),
        ({"Email": "a@example.com"}, 4, "certificate_5"),
        ({"Name": "   "}, 1, "certificate_2"),
        ({"Name": "a/b"}, 0, "a_b"),
    ],
)
def test_artifact_name(row: dict, index: int, expected: str) -> None:
    assert artifact_name(row, index) == expected


def test_duplicate_names_are_kept_apart(template_bytes: bytes, layout: list) -> None:
    result = generate_batch(template_bytes, layout, [{"Name": "Ana"}, {"Name": "Ana"}, {}])
    assert result.artifacts == ["Ana.pdf", "Ana_2.pdf", "certificate_3.pdf"]
    assert sorted(read_archive(result.archive)) == sorted(result.artifacts)


def test_invalid_template_fails_before_any_row(layout: list) -> None:
    calls: list[float] = []
    with pytest.raises(TemplateParseError):
        generate_batch(b"not a pdf", layout, [{"Name": "Ana"}], on_progress=calls.append)
    assert calls == []


def test_failed_row_is_skipped(monkeypatch, template_bytes: bytes, layout: list) -> None:
    real_render = batch.render_certificate

    def flaky_render(template, fields, row, image_cache, diagnostics=None, row_index=None):
        if row.get("Name") == "Luis":
            raise RuntimeError("disk on fire")
        return real_render(template, fields, row, image_cache, diagnostics=diagnostics, row_index=row_index)

    monkeypatch.setattr(batch, "render_certificate", flaky_render)
    calls: list[float] = []
    rows = [{"Name": "Ana"}, {"Name": "Luis"}, {"Name": "Mia"}]
    result = generate_batch(template_bytes, layout, rows, on_progress=calls.append)

    assert result.artifacts == ["Ana.pdf", "Mia.pdf"]
    assert result.failed_rows == [1]
    (diagnostic,) = result.diagnostics
    assert diagnostic.kind == "RowRenderError"
    assert "Luis" in diagnostic.message
    assert calls[-1] == 100.0
    assert result.summary() == "2 of 3 certificates generated, 0 fields skipped"


def test_stop_signal_returns_finished_certificates(template_bytes: bytes, layout: list) -> None:
    done: list[float] = []
    rows = [{"Name": "Ana"}, {"Name": "Luis"}, {"Name": "Mia"}]
    result = generate_batch(
        template_bytes, layout, rows, on_progress=done.append, should_stop=lambda: len(done) >= 1
    )
    assert result.cancelled is True
    assert list(read_archive(result.archive)) == ["Ana.pdf"]
    assert result.summary().endswith("(cancelled)")


def test_jpeg_image_is_rendered(template_bytes: bytes, jpeg_bytes: bytes) -> None:
    fields = [ImageField(id="sig", x=50, y=80, source_bytes=jpeg_bytes)]
    result = generate_batch(template_bytes, fields, [{"Name": "Ana"}])
    assert result.skipped_fields == 0
    assert count_images(read_archive(result.archive)["Ana.pdf"]) == 1


def test_broken_image_is_omitted_but_row_is_kept(template_bytes: bytes, layout: list) -> None:
    fields = layout + [ImageField(id="logo", x=50, y=80, source_bytes=b"\x89PNG broken")]
    result = generate_batch(template_bytes, fields, [{"Name": "Ana"}, {"Name": "Luis"}])
    files = read_archive(result.archive)
    assert list(files) == ["Ana.pdf", "Luis.pdf"]
    assert count_images(files["Ana.pdf"]) == 0
    assert span_texts(files["Ana.pdf"]) == {"Certificate of Completion", "Ana"}
    assert result.skipped_fields == 2
    assert [d.row_index for d in result.diagnostics] == [0, 1]
    assert {d.field_id for d in result.diagnostics} == {"logo"}


def test_generate_returns_archive_bytes(template_bytes: bytes, layout: list) -> None:
    archive = generate(template_bytes, layout, [{"Name": "Ana"}])
    assert list(read_archive(archive)) == ["Ana.pdf"]


def test_archive_writer_call_order() -> None:
    writer = ZipArchiveWriter()
    with pytest.raises(RuntimeError):
        writer.add_file("a.pdf", b"x")
    writer.create_archive()
    with pytest.raises(RuntimeError):
        writer.create_archive()
    assert writer.add_file("a.pdf", b"x") == "a.pdf"
    assert writer.add_file("a.pdf", b"y") == "a_2.pdf"
    data = writer.finalize()
    assert read_archive(data) == {"a.pdf": b"x", "a_2.pdf": b"y"}
    with pytest.raises(RuntimeError):
        writer.finalize()
