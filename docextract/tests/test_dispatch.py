import pytest

from docextract.dispatch import (
    DOCX_MIME_TYPE,
    PIPELINE_ROUTES,
    XLS_MIME_TYPE,
    XLSX_MIME_TYPE,
    select_pipeline,
    supported_mime_types,
)
from docextract.errors import UnsupportedFileType


@pytest.mark.parametrize(
    "mime, expected",
    [
        ("image/jpeg", "image"),
        ("image/png", "image"),
        ("application/pdf", "pdf"),
        (DOCX_MIME_TYPE, "docx"),
        (XLSX_MIME_TYPE, "spreadsheet"),
        (XLS_MIME_TYPE, "spreadsheet"),
    ],
)
def test_supported_mime_types_select_single_pipeline(mime, expected):
    matching = [route.name for route in PIPELINE_ROUTES if route.matches_mime(mime)]

    assert matching == [expected]
    assert select_pipeline(mime, "ignored.bin") == expected


def test_mime_type_wins_over_extension():
    assert select_pipeline("application/pdf", "scan.png") == "pdf"


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("photo.JPG", "image"),
        ("report.pdf", "pdf"),
        ("letter.docx", "docx"),
        ("budget.xlsx", "spreadsheet"),
        ("legacy.xls", "spreadsheet"),
    ],
)
def test_extension_fallback_when_mime_unknown(filename, expected):
    assert select_pipeline("application/octet-stream", filename) == expected


def test_unmatched_type_raises_unsupported():
    with pytest.raises(UnsupportedFileType) as excinfo:
        select_pipeline("text/plain", "notes.txt")

    assert excinfo.value.code == "UNSUPPORTED_FILE_TYPE"
    assert excinfo.value.status_code == 400


def test_supported_mime_types_lists_every_route():
    assert supported_mime_types() == sorted(
        ["image/jpeg", "image/png", "application/pdf", DOCX_MIME_TYPE, XLSX_MIME_TYPE, XLS_MIME_TYPE]
    )
