from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import config
from .auth import get_current_user
from .batch import generate_batch
from .errors import TemplateParseError
from .fields import load_layout
from .fonts import FontFamily, FontStyle
from .rows import rows_from_csv_bytes, rows_from_json

logger = logging.getLogger(__name__)

app = FastAPI(title="Certificate Batch API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Certificates-Generated", "X-Certificates-Total", "X-Fields-Skipped"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "message": "Request validation failed.",
            "detail": exc.errors(),
        },
    )


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/fonts")
def list_fonts() -> dict[str, list[str]]:
    return {
        "families": [family.value for family in FontFamily],
        "styles": [style.value for style in FontStyle],
    }


def _parse_json_form(raw: str, label: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid JSON in {label}: {exc}") from exc


def _load_rows(rows_json: str | None, csv_file: UploadFile | None) -> list[dict]:
    if rows_json and csv_file is not None:
        raise HTTPException(status_code=400, detail="Send either rows_json or csv_file, not both.")
    try:
        if csv_file is not None:
            return rows_from_csv_bytes(csv_file.file.read())
        if rows_json:
            return rows_from_json(_parse_json_form(rows_json, "rows_json"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid row data: {exc}") from exc
    raise HTTPException(status_code=400, detail="Provide rows_json or csv_file.")


@app.post("/api/generate-batch")
def generate_batch_upload(
    template: UploadFile = File(...),
    fields_json: str = Form(...),
    rows_json: str | None = Form(None),
    csv_file: UploadFile | None = File(None),
    current_user: dict = Depends(get_current_user),
) -> Response:
    try:
        fields = load_layout(_parse_json_form(fields_json, "fields_json"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid layout: {exc}") from exc

    rows = _load_rows(rows_json, csv_file)
    if len(rows) > config.MAX_ROWS:
        raise HTTPException(
            status_code=413,
            detail=f"Too many rows: {len(rows)} (limit {config.MAX_ROWS}).",
        )

    logger.info("Batch request from %s: %d row(s)", current_user.get("sub", "anonymous"), len(rows))
    try:
        result = generate_batch(template.file.read(), fields, rows)
    except TemplateParseError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    for diagnostic in result.diagnostics:
        logger.warning("%s: %s", diagnostic.kind, diagnostic.message)

    return Response(
        content=result.archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{config.ARCHIVE_NAME}"',
            "X-Certificates-Generated": str(result.generated),
            "X-Certificates-Total": str(result.total_rows),
            "X-Fields-Skipped": str(result.skipped_fields),
        },
    )
