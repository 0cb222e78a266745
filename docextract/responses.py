from __future__ import annotations

from datetime import datetime, timezone

from docextract.errors import ExtractionError
from docextract.intake import UploadedFile
from docextract.pipelines import ExtractionResult, SheetExtraction, TextExtraction
from docextract.schema_models import validate_error_envelope, validate_response_envelope


def build_metadata(
    result: ExtractionResult,
    upload: UploadedFile,
    processed_at: datetime | None = None,
) -> dict:
    metadata: dict = {
        "originalFile": upload.original_name,
        "fileType": upload.mime_type,
        "processedAt": (processed_at or datetime.now(timezone.utc)).isoformat(),
    }

    if isinstance(result, TextExtraction):
        metadata["textLength"] = len(result.text)
        metadata["wordCount"] = len(result.text.split())
    elif isinstance(result, SheetExtraction):
        metadata["sheets"] = list(result.data)
        metadata["totalRows"] = sum(len(rows) for rows in result.data.values())

    return metadata


def compose_success(
    result: ExtractionResult,
    upload: UploadedFile,
    processed_at: datetime | None = None,
) -> dict:
    return validate_response_envelope(
        {
            "success": True,
            "data": result.to_dict(),
            "metadata": build_metadata(result, upload, processed_at),
        }
    )


def compose_legacy(result: ExtractionResult) -> dict:
    return {"success": True, "data": result.to_dict()}


def compose_error(
    message: str,
    code: str,
    error_type: str | None = None,
) -> dict:
    return validate_error_envelope(
        {
            "success": False,
            "error": {"message": message, "code": code, "type": error_type},
        }
    )


def compose_extraction_error(exc: ExtractionError) -> dict:
    return compose_error(exc.message, exc.code, exc.error_type)
