from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

ENTRY_SEPARATOR = "-----------------"


def format_error_entry(
    exc: BaseException,
    *,
    request_path: str,
    request_method: str,
    occurred_at: datetime | None = None,
) -> str:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
    return (
        "\n"
        f"Time: {(occurred_at or datetime.now(timezone.utc)).isoformat()}\n"
        f"Error: {exc}\n"
        f"Stack: {stack}\n"
        f"Request Path: {request_path}\n"
        f"Request Method: {request_method}\n"
        f"{ENTRY_SEPARATOR}\n"
    )


def append_error(
    log_path: Path,
    exc: BaseException,
    *,
    request_path: str,
    request_method: str,
) -> bool:
    """Append one error block to the log file; failures are logged and swallowed."""

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        entry = format_error_entry(exc, request_path=request_path, request_method=request_method)
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(entry)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to log error to %s", log_path)
        return False
    return True
