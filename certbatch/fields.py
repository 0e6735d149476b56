"""Field definitions for a certificate layout.

A layout is an ordered list of fields. Each field is one of three variants,
decided once when the layout is parsed:

* ``StaticTextField`` draws the same literal text on every certificate.
* ``BoundTextField`` draws the value of one dataset column for each row.
* ``ImageField`` draws a PNG or JPEG image.

Positions are percentages of the template page (origin top-left) and refer to
the visual centre of the element.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Union


Row = Mapping[str, Any]


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


@dataclass(frozen=True)
class TextStyle:
    font_size: float = 12.0
    font_family: str = "Helvetica"
    font_style: str = "Normal"
    color: str | tuple[float, float, float] | None = "#000000"

    def __post_init__(self) -> None:
        if float(self.font_size) <= 0:
            raise ValueError(f"font_size must be positive, got {self.font_size}.")
        object.__setattr__(self, "font_size", float(self.font_size))


@dataclass(frozen=True)
class _PositionedField:
    id: str
    x: float
    y: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", clamp_percent(self.x))
        object.__setattr__(self, "y", clamp_percent(self.y))


@dataclass(frozen=True)
class StaticTextField(_PositionedField):
    content: str = ""
    style: TextStyle = field(default_factory=TextStyle)
    label: str | None = None


@dataclass(frozen=True)
class BoundTextField(_PositionedField):
    binding_key: str = ""
    style: TextStyle = field(default_factory=TextStyle)
    # Editor label text only; never drawn.
    content: str = ""
    label: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.binding_key, str) or not self.binding_key:
            raise ValueError(f"Field '{self.id}': binding_key must be a non-empty column name.")


@dataclass(frozen=True)
class ImageField(_PositionedField):
    source_bytes: bytes = b""
    width_percent: float | None = None
    height_percent: float | None = None
    label: str | None = None


TextField = Union[StaticTextField, BoundTextField]
FieldDefinition = Union[StaticTextField, BoundTextField, ImageField]


def stringify_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if value != value:  # NaN from spreadsheet readers
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def resolve_text(text_field: TextField, row: Row) -> str:
    """Return the text a field draws for one row.

    Bound fields read their column (an absent column gives an empty string);
    static fields always draw their literal content.
    """
    if isinstance(text_field, BoundTextField):
        return stringify_value(row.get(text_field.binding_key))
    return text_field.content


def _optional_positive(value: Any, name: str, field_id: str) -> float | None:
    if value is None or value == "":
        return None
    number = float(value)
    if number <= 0:
        raise ValueError(f"Field '{field_id}': {name} must be positive, got {value}.")
    return number


def decode_image_source(value: str, field_id: str) -> bytes:
    payload = value.strip()
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Field '{field_id}': image content is not valid base64.") from exc


def _read_image_source(
    data: Mapping[str, Any],
    field_id: str,
    base_dir: Path | None,
    allow_paths: bool,
) -> bytes:
    path_value = data.get("path")
    if path_value:
        if not allow_paths:
            raise ValueError(f"Field '{field_id}': image 'path' sources are not accepted here.")
        path = Path(str(path_value))
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ValueError(f"Field '{field_id}': cannot read image {path}: {exc}") from exc
    content = data.get("content")
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    if isinstance(content, str) and content.strip():
        return decode_image_source(content, field_id)
    return b""


def _coordinate(value: Any) -> float:
    return 50.0 if value is None else float(value)


def field_from_dict(
    data: Mapping[str, Any],
    base_dir: Path | None = None,
    allow_paths: bool = False,
) -> FieldDefinition:
    """Build a field from the layout editor's JSON representation.

    Image ``path`` sources are read only when ``allow_paths`` is set (layout
    files on the local disk). Malformed values raise ValueError.
    """
    if not isinstance(data, Mapping):
        raise ValueError("Each field must be an object.")
    if "id" not in data:
        raise ValueError("Each field must define an 'id'.")
    field_id = str(data["id"])
    try:
        return _build_field(data, field_id, base_dir, allow_paths)
    except TypeError as exc:
        raise ValueError(f"Field '{field_id}': {exc}") from exc
    except ValueError as exc:
        if str(exc).startswith(f"Field '{field_id}'"):
            raise
        raise ValueError(f"Field '{field_id}': {exc}") from exc


def _build_field(
    data: Mapping[str, Any],
    field_id: str,
    base_dir: Path | None,
    allow_paths: bool,
) -> FieldDefinition:
    kind = str(data.get("type", "TEXT")).upper()
    x = _coordinate(data.get("x"))
    y = _coordinate(data.get("y"))
    label = data.get("label")

    if kind == "IMAGE":
        return ImageField(
            id=field_id,
            x=x,
            y=y,
            source_bytes=_read_image_source(data, field_id, base_dir, allow_paths),
            width_percent=_optional_positive(data.get("width"), "width", field_id),
            height_percent=_optional_positive(data.get("height"), "height", field_id),
            label=label,
        )
    if kind != "TEXT":
        raise ValueError(f"Field '{field_id}': unknown type '{data.get('type')}'.")

    style = TextStyle(
        font_size=float(data.get("fontSize") or 12),
        font_family=str(data.get("fontFamily") or "Helvetica"),
        font_style=str(data.get("fontStyle") or "Normal"),
        color=data.get("color") or "#000000",
    )
    content = data.get("content")
    content = "" if content is None else str(content)
    binding_key = data.get("valueKey")
    if isinstance(binding_key, str) and binding_key:
        return BoundTextField(
            id=field_id, x=x, y=y, binding_key=binding_key, style=style, content=content, label=label
        )
    return StaticTextField(id=field_id, x=x, y=y, content=content, style=style, label=label)


def check_unique_ids(fields: Iterable[FieldDefinition]) -> None:
    seen: set[str] = set()
    for item in fields:
        if item.id in seen:
            raise ValueError(f"Duplicate field id: {item.id}")
        seen.add(item.id)


def load_layout(
    data: Any,
    base_dir: Path | None = None,
    allow_paths: bool = False,
) -> list[FieldDefinition]:
    """Parse a layout given as a list of fields or a ``{"fields": [...]}`` document."""
    if isinstance(data, Mapping):
        data = data.get("fields", [])
    if not isinstance(data, list):
        raise ValueError("Layout must be a list of fields or an object with a 'fields' list.")
    fields = [field_from_dict(item, base_dir=base_dir, allow_paths=allow_paths) for item in data]
    check_unique_ids(fields)
    return fields


def load_layout_file(path: Path) -> list[FieldDefinition]:
    with path.open("r", encoding="utf-8") as f:
        return load_layout(json.load(f), base_dir=path.parent, allow_paths=True)
