"""Pydantic response models for the Gemini Gateway API.

FastAPI uses these for response serialisation and OpenAPI documentation.

Models
------
AnalyzeResponse
    Success body for ``POST /analyze-image``.
GeminiTestResponse
    Body for ``GET /test-gemini``, on success and failure.
ErrorResponse
    Body of every 4xx/5xx response produced by the gateway's exception
    handlers.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class AnalyzeResponse(BaseModel):
    """Response body for a successful ``POST /analyze-image``."""

    output: str = Field(
        ...,
        description="Text generated by the model for the uploaded image.",
    )


class GeminiTestResponse(BaseModel):
    """Response body for ``GET /test-gemini``.

    Attributes:
        success: ``True`` if the upstream probe produced text.
        output: Generated text (success only).
        error: Client-safe error message (failure only).
        details: Upstream diagnostic, present only when detail exposure is
            enabled.
    """

    success: bool = Field(..., description="Whether the probe succeeded.")
    output: str | None = Field(default=None, description="Generated text.")
    error: str | None = Field(default=None, description="Error message.")
    details: str | None = Field(default=None, description="Upstream diagnostic.")


class ErrorResponse(BaseModel):
    """Structured error body.

    Attributes:
        error: Client-safe description of the failure.
        code: Machine-readable error code, e.g. ``LIMIT_FILE_SIZE``.
        details: Internal diagnostic, only when detail exposure is enabled.
    """

    error: str = Field(..., description="Client-safe error message.")
    code: str | None = Field(default=None, description="Machine-readable error code.")
    details: str | None = Field(default=None, description="Internal diagnostic.")
