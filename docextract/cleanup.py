from __future__ import annotations

import asyncio
import errno
import logging
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

LOCKED_ERRNOS = {errno.EPERM, errno.EACCES, errno.EBUSY}
# ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
LOCKED_WINERRORS = {32, 33}
STATE_HISTORY_LIMIT = 1024


class CleanupState(str, Enum):
    PENDING = "pending"
    RETRY_SCHEDULED = "retry_scheduled"
    DELETED = "deleted"
    ABANDONED = "abandoned"


def is_locked_error(exc: OSError) -> bool:
    if isinstance(exc, PermissionError):
        return True
    if getattr(exc, "winerror", None) in LOCKED_WINERRORS:
        return True
    return exc.errno in LOCKED_ERRNOS


class CleanupManager:
    """Removes request files, retrying after a delay when the OS reports them as locked.

    Each path moves ``PENDING -> DELETED`` or ``PENDING -> RETRY_SCHEDULED ->
    DELETED``; when every retry fails it ends in ``ABANDONED``. Errors are
    logged and never raised to the caller.
    """

    def __init__(self, *, retry_delay_seconds: float = 1.0, max_retries: int = 1) -> None:
        self.retry_delay_seconds = retry_delay_seconds
        self.max_retries = max_retries
        self.states: dict[Path, CleanupState] = {}
        self._pending: set[asyncio.Task] = set()

    def _set_state(self, path: Path, state: CleanupState) -> None:
        self.states.pop(path, None)
        self.states[path] = state
        while len(self.states) > STATE_HISTORY_LIMIT:
            self.states.pop(next(iter(self.states)))

    def _try_unlink(self, path: Path) -> OSError | None:
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("File already removed: %s", path)
        except OSError as exc:
            return exc
        return None

    async def cleanup(self, path: Path) -> CleanupState:
        path = Path(path)
        self._set_state(path, CleanupState.PENDING)

        exc = self._try_unlink(path)
        if exc is None:
            logger.info("Successfully cleaned up file: %s", path)
            self._set_state(path, CleanupState.DELETED)
            return CleanupState.DELETED

        if not is_locked_error(exc) or self.max_retries <= 0:
            logger.warning("Failed to cleanup file: %s (%s)", path, exc)
            self._set_state(path, CleanupState.ABANDONED)
            return CleanupState.ABANDONED

        logger.warning("File is locked, will be cleaned up later: %s", path)
        self._set_state(path, CleanupState.RETRY_SCHEDULED)
        task = asyncio.get_running_loop().create_task(self._retry_later(path))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return CleanupState.RETRY_SCHEDULED

    async def _retry_later(self, path: Path) -> None:
        last_error: OSError | None = None
        for attempt in range(1, self.max_retries + 1):
            await asyncio.sleep(self.retry_delay_seconds)
            last_error = self._try_unlink(path)
            if last_error is None:
                logger.info("Delayed cleanup successful: %s (attempt %d)", path, attempt)
                self._set_state(path, CleanupState.DELETED)
                return
            if not is_locked_error(last_error):
                break

        logger.error("Abandoning cleanup of %s after %d retries: %s", path, self.max_retries, last_error)
        self._set_state(path, CleanupState.ABANDONED)

    async def wait_for_pending(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def scope(self) -> CleanupScope:
        return CleanupScope(self)


class CleanupScope:
    """Collects the files of one request and cleans each of them exactly once on exit."""

    def __init__(self, manager: CleanupManager) -> None:
        self.manager = manager
        self.paths: list[Path] = []

    def track(self, path: Path) -> Path:
        path = Path(path)
        if path not in self.paths:
            self.paths.append(path)
        return path

    async def close(self) -> None:
        paths, self.paths = self.paths, []
        for path in reversed(paths):
            try:
                await self.manager.cleanup(path)
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected cleanup failure for %s", path)

    async def __aenter__(self) -> CleanupScope:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
