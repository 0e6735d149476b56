from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

ARTIFACT_EXTENSION = ".pdf"
ARCHIVE_NAME = "certificates.zip"
NAME_COLUMNS: tuple[str, ...] = ("Name", "Nombre", "name")


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


# HS256 secret for the HTTP API. Empty disables bearer-token checks.
JWT_SECRET: str = os.environ.get("CERTBATCH_JWT_SECRET", "")

# Width in points for image fields without an explicit width.
DEFAULT_IMAGE_WIDTH: float = _env_float("CERTBATCH_DEFAULT_IMAGE_WIDTH", 100.0)

MAX_ROWS: int = _env_int("CERTBATCH_MAX_ROWS", 1000)

CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get(
        "CERTBATCH_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]
