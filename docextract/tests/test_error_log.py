from unittest.mock import patch

from docextract.error_log import ENTRY_SEPARATOR, append_error


def _raise_and_capture():
    try:
        raise ValueError("pipeline exploded")
    except ValueError as exc:
        return exc


def test_append_error_creates_directory_and_appends(tmp_path):
    log_path = tmp_path / "logs" / "error.log"
    exc = _raise_and_capture()

    assert append_error(log_path, exc, request_path="/api/process", request_method="POST")
    assert append_error(log_path, exc, request_path="/api/extract", request_method="POST")

    content = log_path.read_text(encoding="utf-8")
    assert content.count(ENTRY_SEPARATOR) == 2
    assert "Error: pipeline exploded" in content
    assert "Request Path: /api/process" in content
    assert "Request Path: /api/extract" in content
    assert "Request Method: POST" in content
    assert "Traceback" in content


def test_append_error_swallows_write_failures(tmp_path):
    log_path = tmp_path / "error.log"

    with patch("pathlib.Path.open", side_effect=OSError("disk full")):
        written = append_error(log_path, ValueError("x"), request_path="/process", request_method="POST")

    assert written is False
