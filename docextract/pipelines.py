from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, BinaryIO, Callable

from docextract.cleanup import CleanupScope
from docextract.dispatch import (
    DOCX_PIPELINE,
    IMAGE_PIPELINE,
    PDF_PIPELINE,
    SPREADSHEET_PIPELINE,
)
from docextract.errors import ProcessingError
from docextract.intake import UploadedFile, claim_path
from docextract.settings import ServiceSettings

logger = logging.getLogger(__name__)

ZIP_SIGNATURE = b"PK\x03\x04"


@dataclass(frozen=True)
class TextExtraction:
    text: str

    def to_dict(self) -> dict:
        return {"text": self.text}


@dataclass(frozen=True)
class SheetExtraction:
    data: dict[str, list[dict[str, Any]]]

    def to_dict(self) -> dict:
        return {"data": self.data}


ExtractionResult = TextExtraction | SheetExtraction


def preprocess_image(source: Path, destination: Path | BinaryIO, *, max_dimension: int) -> dict:
    """Normalize an image for OCR: honour EXIF orientation, greyscale, bounded size."""

    from PIL import Image, ImageOps

    with Image.open(source) as image:
        normalized = ImageOps.exif_transpose(image).convert("L")
        width, height = normalized.size
        details = {"original_width": width, "original_height": height, "resized": False}
        if max(width, height) > max_dimension:
            scale = max_dimension / float(max(width, height))
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            normalized = normalized.resize(new_size)
            details.update({"resized": True, "new_width": new_size[0], "new_height": new_size[1]})
        normalized.save(destination, format="PNG")
    return details


def recognize_text(image_path: Path, *, lang: str) -> str:
    import pytesseract

    return (pytesseract.image_to_string(str(image_path), lang=lang) or "").strip()


def extract_image(upload: UploadedFile, scope: CleanupScope, settings: ServiceSettings) -> TextExtraction:
    try:
        processed_path, handle = claim_path(upload.stored_path.parent, f"{upload.stored_path.stem}_processed.png")
        scope.track(processed_path)
        with handle:
            details = preprocess_image(
                upload.stored_path,
                handle,
                max_dimension=settings.image_max_dimension,
            )
        logger.info("Image preprocessed for OCR: %s %s", upload.stored_filename, details)
        text = recognize_text(processed_path, lang=settings.ocr_lang)
    except Exception as exc:  # noqa: BLE001
        raise ProcessingError(f"Image text extraction failed: {exc}", pipeline=IMAGE_PIPELINE) from exc
    return TextExtraction(text=text)


def extract_pdf(upload: UploadedFile, scope: CleanupScope, settings: ServiceSettings) -> TextExtraction:
    try:
        from pypdf import PdfReader

        reader = PdfReader(str(upload.stored_path))
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
    except Exception as exc:  # noqa: BLE001
        raise ProcessingError(f"PDF text extraction failed: {exc}", pipeline=PDF_PIPELINE) from exc
    return TextExtraction(text="\n\n".join(page for page in pages if page))


def extract_docx(upload: UploadedFile, scope: CleanupScope, settings: ServiceSettings) -> TextExtraction:
    try:
        from docx import Document

        document = Document(str(upload.stored_path))
        paragraphs = [paragraph.text.strip() for paragraph in document.paragraphs]
    except Exception as exc:  # noqa: BLE001
        raise ProcessingError(f"DOCX text extraction failed: {exc}", pipeline=DOCX_PIPELINE) from exc
    return TextExtraction(text="\n".join(paragraph for paragraph in paragraphs if paragraph))


def _json_cell(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_keys(header_row: list[Any]) -> list[str]:
    keys: list[str] = []
    empty_count = 0
    for value in header_row:
        if _is_blank(value):
            keys.append("__EMPTY" if empty_count == 0 else f"__EMPTY_{empty_count}")
            empty_count += 1
            continue
        key = str(value).strip()
        base, suffix = key, 1
        while key in keys:
            key = f"{base}_{suffix}"
            suffix += 1
        keys.append(key)
    return keys


def rows_to_records(rows: list[list[Any]]) -> list[dict[str, Any]]:
    """Turn sheet rows into records keyed by the first non-blank row."""

    non_blank = [list(row) for row in rows if not all(_is_blank(value) for value in row)]
    if not non_blank:
        return []

    width = max(len(row) for row in non_blank)
    header = _header_keys(non_blank[0] + [None] * (width - len(non_blank[0])))
    records: list[dict[str, Any]] = []
    for row in non_blank[1:]:
        record = {
            header[index]: _json_cell(value)
            for index, value in enumerate(row)
            if not _is_blank(value)
        }
        records.append(record)
    return records


def _read_xlsx(path: Path) -> dict[str, list[dict[str, Any]]]:
    from openpyxl import load_workbook

    workbook = load_workbook(str(path), read_only=True, data_only=True)
    try:
        return {
            sheet_name: rows_to_records([list(row) for row in workbook[sheet_name].iter_rows(values_only=True)])
            for sheet_name in workbook.sheetnames
        }
    finally:
        workbook.close()


def _read_xls(path: Path) -> dict[str, list[dict[str, Any]]]:
    import xlrd

    workbook = xlrd.open_workbook(str(path))
    data: dict[str, list[dict[str, Any]]] = {}
    for sheet_index in range(workbook.nsheets):
        sheet = workbook.sheet_by_index(sheet_index)
        rows: list[list[Any]] = []
        for row_index in range(sheet.nrows):
            row: list[Any] = []
            for cell in sheet.row(row_index):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(xlrd.xldate.xldate_as_datetime(cell.value, workbook.datemode))
                elif cell.ctype == xlrd.XL_CELL_EMPTY:
                    row.append(None)
                else:
                    row.append(cell.value)
            rows.append(row)
        data[sheet.name] = rows_to_records(rows)
    return data


def extract_spreadsheet(upload: UploadedFile, scope: CleanupScope, settings: ServiceSettings) -> SheetExtraction:
    try:
        with upload.stored_path.open("rb") as handle:
            signature = handle.read(len(ZIP_SIGNATURE))
        if signature == ZIP_SIGNATURE:
            data = _read_xlsx(upload.stored_path)
        else:
            data = _read_xls(upload.stored_path)
    except Exception as exc:  # noqa: BLE001
        raise ProcessingError(f"Spreadsheet extraction failed: {exc}", pipeline=SPREADSHEET_PIPELINE) from exc
    return SheetExtraction(data=data)


Pipeline = Callable[[UploadedFile, CleanupScope, ServiceSettings], ExtractionResult]

PIPELINES: dict[str, Pipeline] = {
    IMAGE_PIPELINE: extract_image,
    PDF_PIPELINE: extract_pdf,
    DOCX_PIPELINE: extract_docx,
    SPREADSHEET_PIPELINE: extract_spreadsheet,
}


def run_pipeline(
    name: str,
    upload: UploadedFile,
    scope: CleanupScope,
    settings: ServiceSettings,
) -> ExtractionResult:
    logger.info("Processing %s with %s pipeline", upload.stored_filename, name)
    return PIPELINES[name](upload, scope, settings)
