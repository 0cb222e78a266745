from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024
DEFAULT_PORT = 3000


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str) -> list[str]:
    return [value.strip() for value in (os.getenv(name) or "").split(",") if value.strip()]


@dataclass
class ServiceSettings:
    upload_dir: Path = Path("uploads")
    allowed_file_types: list[str] = field(default_factory=list)
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    cors_allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    cleanup_retry_delay_ms: int = 1000
    cleanup_max_retries: int = 1
    ocr_lang: str = "eng"
    image_max_dimension: int = 2048

    @property
    def error_log_path(self) -> Path:
        return self.log_dir / "error.log"

    def to_dict(self) -> dict:
        return {
            "upload_dir": str(self.upload_dir),
            "allowed_file_types": list(self.allowed_file_types),
            "max_file_size": self.max_file_size,
            "host": self.host,
            "port": self.port,
            "log_dir": str(self.log_dir),
            "log_level": self.log_level,
            "cors_allowed_origins": list(self.cors_allowed_origins),
            "cleanup_retry_delay_ms": self.cleanup_retry_delay_ms,
            "cleanup_max_retries": self.cleanup_max_retries,
            "ocr_lang": self.ocr_lang,
            "image_max_dimension": self.image_max_dimension,
        }


def load_settings() -> ServiceSettings:
    """Read service configuration from the environment, falling back to defaults."""

    return ServiceSettings(
        upload_dir=Path(os.getenv("UPLOAD_DIR") or "uploads"),
        allowed_file_types=_env_list("ALLOWED_FILE_TYPES"),
        max_file_size=_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
        host=(os.getenv("HOST") or "0.0.0.0").strip(),
        port=_env_int("PORT", DEFAULT_PORT),
        log_dir=Path(os.getenv("LOG_DIR") or "logs"),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
        cors_allowed_origins=_env_list("CORS_ALLOWED_ORIGINS") or ["*"],
        cleanup_retry_delay_ms=max(0, _env_int("CLEANUP_RETRY_DELAY_MS", 1000)),
        cleanup_max_retries=max(0, _env_int("CLEANUP_MAX_RETRIES", 1)),
        ocr_lang=(os.getenv("OCR_LANG") or "eng").strip(),
        image_max_dimension=max(1, _env_int("IMAGE_MAX_DIMENSION", 2048)),
    )
