from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docextract.cleanup import CleanupManager, CleanupScope
from docextract.dispatch import IMAGE_PIPELINE, select_pipeline
from docextract.error_log import append_error
from docextract.errors import (
    ExtractionError,
    InvalidFileType,
    NoFileUploaded,
    ProcessingError,
    UnsupportedFileType,
)
from docextract.intake import UploadedFile, check_allowed_type, read_upload, store_upload
from docextract.pipelines import run_pipeline
from docextract.responses import compose_error, compose_extraction_error, compose_legacy, compose_success
from docextract.settings import load_settings

logger = logging.getLogger(__name__)

MISSING_FILE_REPLIES = {
    "/extract": ("No file uploaded", None),
    "/process": ("No file uploaded", "NO_FILE"),
    "/test-ocr": ("No image uploaded", "NO_FILE"),
}

SETTINGS = load_settings()
CLEANUP = CleanupManager(
    retry_delay_seconds=SETTINGS.cleanup_retry_delay_ms / 1000.0,
    max_retries=SETTINGS.cleanup_max_retries,
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    SETTINGS.upload_dir.mkdir(parents=True, exist_ok=True)
    SETTINGS.log_dir.mkdir(parents=True, exist_ok=True)
    yield
    await CLEANUP.wait_for_pending()


app = FastAPI(title="Document Extraction API", lifespan=lifespan)


@app.middleware("http")
async def api_prefix_alias(request, call_next):
    """Accept both `/path` and `/api/path` for client compatibility."""
    path = request.scope.get("path", "")
    if path.startswith("/api/"):
        request.scope["requested_path"] = path
        request.scope["path"] = path[4:]
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.cors_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _log_request_error(request: Request, exc: BaseException) -> None:
    await run_in_threadpool(
        append_error,
        SETTINGS.error_log_path,
        exc,
        request_path=request.scope.get("requested_path") or request.url.path,
        request_method=request.method,
    )


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    logger.warning("Request failed with %s: %s", exc.code, exc.message)
    await _log_request_error(request, exc)
    return JSONResponse(status_code=exc.status_code, content=compose_extraction_error(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if any("file" in error.get("loc", ()) for error in exc.errors()):
        message, code = MISSING_FILE_REPLIES.get(request.url.path, ("No file uploaded", None))
        return await extraction_error_handler(request, NoFileUploaded(message, code=code))

    logger.warning("Request validation failed on %s: %s", request.url.path, exc.errors())
    await _log_request_error(request, exc)
    return JSONResponse(status_code=400, content=compose_error("Invalid request", "VALIDATION_ERROR"))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning("HTTP %d on %s: %s", exc.status_code, request.url.path, exc.detail)
    await _log_request_error(request, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=compose_error(str(exc.detail), "HTTP_ERROR"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    await _log_request_error(request, exc)
    return JSONResponse(
        status_code=500,
        content=compose_error(str(exc) or "Internal server error", "INTERNAL_ERROR"),
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}


async def _receive_upload(
    file: UploadFile | None,
    scope: CleanupScope,
    *,
    missing_message: str = "No file uploaded",
    missing_code: str | None = None,
    enforce_allow_list: bool = False,
) -> UploadedFile:
    original_name, mime_type, content = await read_upload(
        file,
        SETTINGS,
        missing_message=missing_message,
        missing_code=missing_code,
    )
    if enforce_allow_list:
        check_allowed_type(mime_type, SETTINGS)

    upload = await run_in_threadpool(store_upload, original_name, content, mime_type, SETTINGS)
    scope.track(upload.stored_path)
    return upload


@app.post("/extract")
async def extract_document(file: UploadFile | None = File(None)):
    async with CLEANUP.scope() as scope:
        upload = await _receive_upload(file, scope, enforce_allow_list=True)
        pipeline = select_pipeline(upload.mime_type, upload.original_name)
        result = await run_in_threadpool(run_pipeline, pipeline, upload, scope, SETTINGS)
        return compose_legacy(result)


@app.post("/process")
async def process_document(file: UploadFile | None = File(None)):
    async with CLEANUP.scope() as scope:
        upload = await _receive_upload(file, scope, missing_code="NO_FILE")
        pipeline = select_pipeline(upload.mime_type, upload.original_name)
        result = await run_in_threadpool(run_pipeline, pipeline, upload, scope, SETTINGS)
        return compose_success(result, upload)


@app.post("/test-ocr")
async def ocr_diagnostic(file: UploadFile | None = File(None)):
    invalid_type = InvalidFileType("Invalid file type. Please upload a PNG or JPEG image.")
    if file is not None and (file.filename or "").strip():
        try:
            pipeline = select_pipeline(file.content_type, file.filename or "")
        except UnsupportedFileType:
            raise invalid_type from None
        if pipeline != IMAGE_PIPELINE:
            raise invalid_type

    async with CLEANUP.scope() as scope:
        upload = await _receive_upload(file, scope, missing_message="No image uploaded", missing_code="NO_FILE")
        try:
            result = await run_in_threadpool(run_pipeline, IMAGE_PIPELINE, upload, scope, SETTINGS)
        except ProcessingError as exc:
            raise ProcessingError(exc.message, pipeline=IMAGE_PIPELINE, code="OCR_ERROR") from exc
        return {
            "success": True,
            "data": {"text": result.text, "originalFile": upload.original_name},
        }
