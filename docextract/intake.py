from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from fastapi import UploadFile

from docextract.dispatch import supported_mime_types
from docextract.errors import InvalidFileType, NoFileUploaded, UploadRejected
from docextract.settings import ServiceSettings

logger = logging.getLogger(__name__)

FALLBACK_FILENAME = "upload"
MAX_CLAIM_ATTEMPTS = 16


@dataclass(frozen=True)
class UploadedFile:
    original_name: str
    stored_path: Path
    mime_type: str
    size_bytes: int

    @property
    def stored_filename(self) -> str:
        return self.stored_path.name

    def to_dict(self) -> dict:
        return {
            "originalName": self.original_name,
            "storedPath": str(self.stored_path),
            "mimeType": self.mime_type,
            "sizeBytes": self.size_bytes,
        }


def sanitize_filename(value: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9.]", "_", Path(value or "").name)
    if not cleaned.strip("._"):
        return FALLBACK_FILENAME
    return cleaned


def check_allowed_type(mime_type: str | None, settings: ServiceSettings) -> None:
    allowed = settings.allowed_file_types or supported_mime_types()
    if (mime_type or "") not in allowed:
        raise InvalidFileType("Invalid file type")


async def read_upload(
    file: UploadFile | None,
    settings: ServiceSettings,
    *,
    missing_message: str = "No file uploaded",
    missing_code: str | None = None,
) -> tuple[str, str, bytes]:
    """Read the multipart ``file`` field, enforcing the configured size ceiling."""

    if file is None or not (file.filename or "").strip():
        raise NoFileUploaded(missing_message, code=missing_code)

    content = await file.read(settings.max_file_size + 1)
    if len(content) > settings.max_file_size:
        raise UploadRejected(f"File too large: limit is {settings.max_file_size} bytes")

    return file.filename or "", (file.content_type or "").strip().lower(), content


def claim_path(target_dir: Path, filename: str) -> tuple[Path, BinaryIO]:
    candidate = target_dir / filename
    stem = candidate.stem
    suffix = candidate.suffix
    for _ in range(MAX_CLAIM_ATTEMPTS):
        try:
            return candidate, candidate.open("xb")
        except FileExistsError:
            candidate = target_dir / f"{stem}_{secrets.token_hex(4)}{suffix}"
    raise UploadRejected(f"Could not allocate a unique name for {filename}")


def store_upload(
    original_name: str,
    content_bytes: bytes,
    mime_type: str,
    settings: ServiceSettings,
) -> UploadedFile:
    settings.upload_dir.mkdir(parents=True, exist_ok=True)

    stored_path, handle = claim_path(settings.upload_dir, sanitize_filename(original_name))
    try:
        with handle:
            handle.write(content_bytes)
    except OSError:
        stored_path.unlink(missing_ok=True)
        raise

    uploaded = UploadedFile(
        original_name=original_name,
        stored_path=stored_path,
        mime_type=mime_type,
        size_bytes=len(content_bytes),
    )
    logger.info("Stored upload %s", uploaded.to_dict())
    return uploaded
