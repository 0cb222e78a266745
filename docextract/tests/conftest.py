import pytest

from docextract import app as app_module
from docextract.cleanup import CleanupManager
from docextract.settings import ServiceSettings


class RecordingCleanupManager(CleanupManager):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.cleaned = []

    async def cleanup(self, path):
        self.cleaned.append(path)
        return await super().cleanup(path)


@pytest.fixture
def service_settings(tmp_path, monkeypatch):
    settings = ServiceSettings(
        upload_dir=tmp_path / "uploads",
        log_dir=tmp_path / "logs",
        cleanup_retry_delay_ms=0,
    )
    monkeypatch.setattr(app_module, "SETTINGS", settings)
    return settings


@pytest.fixture
def cleanup_manager(monkeypatch):
    manager = RecordingCleanupManager(retry_delay_seconds=0, max_retries=1)
    monkeypatch.setattr(app_module, "CLEANUP", manager)
    return manager
