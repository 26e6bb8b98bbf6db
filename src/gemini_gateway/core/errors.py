"""Error taxonomy for the Gemini Gateway.

Every failure a request can hit is represented by a :class:`GatewayError`
subclass.  Each class carries the HTTP status it maps to and a short
machine-readable ``code`` that clients can branch on.  The ``message`` is
always safe to show to the client; anything that might leak internal or
upstream detail goes into ``details`` and is only returned when
``GatewayConfig.expose_error_details`` is enabled.

========================  ======  ==========================
Class                     Status  Code
========================  ======  ==========================
UploadValidationError     400     ``INVALID_UPLOAD``
PayloadTooLarge           400     ``LIMIT_FILE_SIZE``
UnsupportedMediaType      400     ``UNSUPPORTED_MEDIA_TYPE``
GenerationFailed          500     ``GENERATION_FAILED``
InternalIOError           500     ``INTERNAL_IO_ERROR``
NotFound                  500     ``TEMP_FILE_NOT_FOUND``
========================  ======  ==========================
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all errors converted to structured HTTP responses.

    Attributes:
        status_code: HTTP status returned to the client.
        code: Machine-readable error code.
        message: Client-safe description.
        details: Internal diagnostic, withheld from clients by default.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, details: str | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class UploadValidationError(GatewayError):
    """The request carries no usable upload."""

    status_code = 400
    code = "INVALID_UPLOAD"
    default_message = "Upload error"


class PayloadTooLarge(UploadValidationError):
    """The upload exceeds the configured size limit."""

    code = "LIMIT_FILE_SIZE"
    default_message = "File too large"


class UnsupportedMediaType(UploadValidationError):
    """The upload's declared content type is not on the allowlist."""

    code = "UNSUPPORTED_MEDIA_TYPE"
    default_message = "Unsupported file type"


class GenerationFailed(GatewayError):
    """The upstream generation call failed for any reason."""

    status_code = 500
    code = "GENERATION_FAILED"
    default_message = "Gemini processing failed"


class InternalIOError(GatewayError):
    """Reading, writing or deleting a temporary file failed."""

    status_code = 500
    code = "INTERNAL_IO_ERROR"
    default_message = "Temporary file storage failed"


class NotFound(InternalIOError):
    """A temporary file handle was never written or is already deleted."""

    code = "TEMP_FILE_NOT_FOUND"
