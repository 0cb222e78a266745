import asyncio
import errno
from pathlib import Path
from unittest.mock import patch

import pytest

from docextract.cleanup import CleanupManager, CleanupState, is_locked_error


def test_cleanup_deletes_file(tmp_path):
    target = tmp_path / "upload.png"
    target.write_bytes(b"data")
    manager = CleanupManager(retry_delay_seconds=0)

    state = asyncio.run(manager.cleanup(target))

    assert state == CleanupState.DELETED
    assert not target.exists()
    assert manager.states[target] == CleanupState.DELETED


def test_missing_file_counts_as_deleted(tmp_path):
    manager = CleanupManager(retry_delay_seconds=0)

    state = asyncio.run(manager.cleanup(tmp_path / "gone.pdf"))

    assert state == CleanupState.DELETED


def test_locked_file_is_retried_after_delay(tmp_path):
    target = tmp_path / "locked.pdf"
    manager = CleanupManager(retry_delay_seconds=0, max_retries=1)

    async def scenario():
        with patch.object(Path, "unlink", side_effect=[PermissionError(errno.EPERM, "locked"), None]) as unlink:
            first = await manager.cleanup(target)
            await manager.wait_for_pending()
        return first, unlink.call_count

    first, calls = asyncio.run(scenario())

    assert first == CleanupState.RETRY_SCHEDULED
    assert calls == 2
    assert manager.states[target] == CleanupState.DELETED


def test_retry_failure_abandons_file(tmp_path):
    target = tmp_path / "locked.pdf"
    manager = CleanupManager(retry_delay_seconds=0, max_retries=2)
    locked = PermissionError(errno.EPERM, "locked")

    async def scenario():
        with patch.object(Path, "unlink", side_effect=[locked, locked, locked]) as unlink:
            await manager.cleanup(target)
            await manager.wait_for_pending()
        return unlink.call_count

    calls = asyncio.run(scenario())

    assert calls == 3
    assert manager.states[target] == CleanupState.ABANDONED


def test_non_lock_error_is_abandoned_without_retry(tmp_path):
    target = tmp_path / "weird.pdf"
    manager = CleanupManager(retry_delay_seconds=0)

    async def scenario():
        with patch.object(Path, "unlink", side_effect=OSError(errno.EIO, "io")) as unlink:
            state = await manager.cleanup(target)
            await manager.wait_for_pending()
        return state, unlink.call_count

    state, calls = asyncio.run(scenario())

    assert state == CleanupState.ABANDONED
    assert calls == 1


def test_is_locked_error_classification():
    assert is_locked_error(PermissionError(errno.EACCES, "denied"))
    assert is_locked_error(OSError(errno.EBUSY, "busy"))
    assert not is_locked_error(OSError(errno.ENOSPC, "full"))


def test_scope_cleans_each_path_once_even_on_error(tmp_path):
    first = tmp_path / "a.png"
    second = tmp_path / "a_processed.png"
    first.write_bytes(b"a")
    second.write_bytes(b"b")
    cleaned = []

    class Recording(CleanupManager):
        async def cleanup(self, path):
            cleaned.append(path)
            return await super().cleanup(path)

    manager = Recording(retry_delay_seconds=0)

    async def scenario():
        async with manager.scope() as scope:
            scope.track(first)
            scope.track(second)
            scope.track(first)
            raise RuntimeError("pipeline failed")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())

    assert sorted(cleaned) == sorted([first, second])
    assert not first.exists()
    assert not second.exists()
