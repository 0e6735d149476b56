from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import Any


def rows_from_csv_text(text: str) -> list[dict]:
    return list(csv.DictReader(io.StringIO(text)))


def rows_from_csv_bytes(data: bytes) -> list[dict]:
    return rows_from_csv_text(data.decode("utf-8-sig"))


def rows_from_json(data: Any) -> list[dict]:
    """Accept a list of row objects, or ``{"rows": [...]}``."""
    if isinstance(data, dict):
        data = data.get("rows", [])
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise ValueError("Row data must be a list of objects.")
    return data


def load_rows_file(path: Path) -> list[dict]:
    if path.suffix.lower() == ".json":
        return rows_from_json(json.loads(path.read_text(encoding="utf-8")))
    with path.open("r", newline="", encoding="utf-8-sig") as f:
        return list(csv.DictReader(f))
