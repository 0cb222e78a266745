import unittest
from pathlib import Path
from unittest.mock import patch

from docextract.settings import DEFAULT_MAX_FILE_SIZE, load_settings


class TestLoadSettings(unittest.TestCase):
    def test_defaults_when_environment_empty(self):
        with patch.dict("os.environ", {}, clear=True):
            settings = load_settings()

        self.assertEqual(settings.upload_dir, Path("uploads"))
        self.assertEqual(settings.max_file_size, DEFAULT_MAX_FILE_SIZE)
        self.assertEqual(settings.max_file_size, 5242880)
        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.allowed_file_types, [])
        self.assertEqual(settings.error_log_path, Path("logs") / "error.log")
        self.assertEqual(settings.cleanup_retry_delay_ms, 1000)
        self.assertEqual(settings.cleanup_max_retries, 1)

    def test_environment_overrides(self):
        env = {
            "UPLOAD_DIR": "/tmp/incoming",
            "ALLOWED_FILE_TYPES": "image/png, application/pdf,,",
            "MAX_FILE_SIZE": "1024",
            "PORT": "8080",
            "CORS_ALLOWED_ORIGINS": "http://localhost:19006",
        }
        with patch.dict("os.environ", env, clear=True):
            settings = load_settings()

        self.assertEqual(settings.upload_dir, Path("/tmp/incoming"))
        self.assertEqual(settings.allowed_file_types, ["image/png", "application/pdf"])
        self.assertEqual(settings.max_file_size, 1024)
        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.cors_allowed_origins, ["http://localhost:19006"])

    def test_invalid_integers_fall_back_to_defaults(self):
        with patch.dict("os.environ", {"MAX_FILE_SIZE": "five", "PORT": ""}, clear=True):
            settings = load_settings()

        self.assertEqual(settings.max_file_size, DEFAULT_MAX_FILE_SIZE)
        self.assertEqual(settings.port, 3000)
