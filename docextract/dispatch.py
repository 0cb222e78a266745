from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from docextract.errors import UnsupportedFileType

logger = logging.getLogger(__name__)

IMAGE_PIPELINE = "image"
PDF_PIPELINE = "pdf"
DOCX_PIPELINE = "docx"
SPREADSHEET_PIPELINE = "spreadsheet"

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME_TYPE = "application/vnd.ms-excel"


@dataclass(frozen=True)
class PipelineRoute:
    name: str
    mime_types: frozenset[str]
    extensions: frozenset[str]

    def matches_mime(self, mime: str) -> bool:
        return (mime or "").strip().lower() in self.mime_types

    def matches_extension(self, extension: str) -> bool:
        return (extension or "").strip().lower() in self.extensions


PIPELINE_ROUTES: tuple[PipelineRoute, ...] = (
    PipelineRoute(
        name=IMAGE_PIPELINE,
        mime_types=frozenset({"image/jpeg", "image/png"}),
        extensions=frozenset({".jpg", ".jpeg", ".png"}),
    ),
    PipelineRoute(
        name=PDF_PIPELINE,
        mime_types=frozenset({"application/pdf"}),
        extensions=frozenset({".pdf"}),
    ),
    PipelineRoute(
        name=DOCX_PIPELINE,
        mime_types=frozenset({DOCX_MIME_TYPE}),
        extensions=frozenset({".docx"}),
    ),
    PipelineRoute(
        name=SPREADSHEET_PIPELINE,
        mime_types=frozenset({XLSX_MIME_TYPE, XLS_MIME_TYPE}),
        extensions=frozenset({".xlsx", ".xls"}),
    ),
)


def normalize_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower().strip()


def supported_mime_types() -> list[str]:
    return sorted({mime for route in PIPELINE_ROUTES for mime in route.mime_types})


def select_pipeline(mime: str | None, filename: str) -> str:
    """Pick the extraction pipeline for an upload.

    The reported MIME type decides first; the lowercase file extension is only
    consulted when no route claims the MIME type.
    """

    for route in PIPELINE_ROUTES:
        if route.matches_mime(mime or ""):
            return route.name

    extension = normalize_extension(filename)
    for route in PIPELINE_ROUTES:
        if route.matches_extension(extension):
            logger.info("Routed %s by extension %s (mime %r unmatched)", filename, extension, mime)
            return route.name

    raise UnsupportedFileType(f"Unsupported file type: {mime or extension or 'unknown'}")
