from __future__ import annotations


class ExtractionError(Exception):
    """Base error carrying the HTTP status and machine-readable code for the error envelope."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.error_type = error_type


class NoFileUploaded(ExtractionError):
    status_code = 400
    code = "NO_FILE_UPLOADED"

    def __init__(self, message: str = "No file uploaded", *, code: str | None = None) -> None:
        super().__init__(message, code=code)


class InvalidFileType(ExtractionError):
    status_code = 400
    code = "INVALID_FILE_TYPE"


class UnsupportedFileType(ExtractionError):
    status_code = 400
    code = "UNSUPPORTED_FILE_TYPE"


class UploadRejected(ExtractionError):
    status_code = 400
    code = "UPLOAD_ERROR"


class ProcessingError(ExtractionError):
    status_code = 500
    code = "PROCESSING_ERROR"

    def __init__(self, message: str, *, pipeline: str | None = None, code: str | None = None) -> None:
        super().__init__(message, code=code, error_type=pipeline)
        self.pipeline = pipeline
