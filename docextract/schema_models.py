from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ResponseMetadataModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    originalFile: str
    fileType: str
    processedAt: str
    textLength: int | None = None
    wordCount: int | None = None
    sheets: list[str] | None = None
    totalRows: int | None = None


class ResponseEnvelopeModel(BaseModel):
    """Success envelope returned by the unified processing endpoint."""

    model_config = ConfigDict(extra="forbid")

    success: bool = True
    data: dict[str, Any]
    metadata: ResponseMetadataModel


class ErrorDetailModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str
    code: str
    type: str | None = None


class ErrorEnvelopeModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool = False
    error: ErrorDetailModel


def validate_response_envelope(payload: dict[str, Any]) -> dict[str, Any]:
    """Validate a success envelope and drop metadata fields that do not apply."""

    return ResponseEnvelopeModel.model_validate(payload).model_dump(exclude_none=True)


def validate_error_envelope(payload: dict[str, Any]) -> dict[str, Any]:
    return ErrorEnvelopeModel.model_validate(payload).model_dump(exclude_none=True)
