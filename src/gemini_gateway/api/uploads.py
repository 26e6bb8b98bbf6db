"""Upload acceptance for multipart image requests.

:func:`accept_upload` turns an incoming multipart request into a stored
:class:`Upload` held for the duration of an ``async with`` block.
Constraints are checked before any bytes are committed to the
:class:`~gemini_gateway.core.temp_store.TempFileStore`:

1. ``Content-Length`` — a body that cannot possibly fit under the limit is
   rejected before the form is parsed.
2. Body size — bytes are counted as they arrive, so a chunked body with no
   ``Content-Length`` is cut off once it passes the same limit.
3. Presence — the ``image`` field must exist and be a non-empty file.
4. Declared size — the parsed part's size must not exceed the limit.
5. Declared type — the part's content type must pass the allowlist, when
   one is configured.

Only then is the file copied into the store, and from that point the store's
:meth:`~gemini_gateway.core.temp_store.TempFileStore.scoped` block owns it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import Request
from starlette.datastructures import FormData, UploadFile
from starlette.types import Message

from gemini_gateway.core.config import GatewayConfig
from gemini_gateway.core.errors import (
    PayloadTooLarge,
    UnsupportedMediaType,
    UploadValidationError,
)
from gemini_gateway.core.temp_store import TempFileStore

logger = logging.getLogger(__name__)

IMAGE_FIELD = "image"
PROMPT_FIELD = "prompt"

# Allowance for multipart boundaries, part headers and the prompt field on
# top of the file itself.
MULTIPART_OVERHEAD_BYTES = 1024 * 1024

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class Upload:
    """An accepted upload held in the temp store for one request.

    Attributes:
        handle: Temp store handle of the file contents.
        filename: Client-supplied file name.
        mime_type: Declared content type.
        size: Size in bytes.
    """

    handle: str
    filename: str
    mime_type: str
    size: int


@asynccontextmanager
async def accept_upload(
    request: Request,
    store: TempFileStore,
    config: GatewayConfig,
) -> AsyncIterator[tuple[Upload, str | None]]:
    """Validate the request's ``image`` upload and hold it in *store*.

    The stored file is deleted when the block exits, however it exits.

    Args:
        request: Incoming multipart request.
        store: Temp store that receives the file.
        config: Size limit and content-type policy.

    Yields:
        Tuple of ``(upload, prompt)``.  ``prompt`` is ``None`` when the form
        carries no text ``prompt`` field.

    Raises:
        PayloadTooLarge: The body or file exceeds the size limit.
        UnsupportedMediaType: The declared type fails the allowlist.
        UploadValidationError: No usable ``image`` file was sent.
    """
    _check_declared_length(request, config)

    form = await _bounded_request(request, config).form(max_files=1)
    try:
        image, prompt = _validated_fields(form, config)
        handle = await store.put(image.file)
    except BaseException:
        await form.close()
        raise

    # No await between put() returning and the scope taking the handle.
    async with store.scoped(handle):
        await form.close()
        upload = Upload(
            handle=handle,
            filename=image.filename or "",
            mime_type=image.content_type or DEFAULT_MIME_TYPE,
            size=image.size,
        )
        yield upload, prompt


def _validated_fields(form: FormData, config: GatewayConfig) -> tuple[UploadFile, str | None]:
    image = form.get(IMAGE_FIELD)
    prompt = form.get(PROMPT_FIELD)

    if not isinstance(image, UploadFile):
        raise UploadValidationError("No image uploaded")
    if not image.size:
        raise UploadValidationError("Uploaded image is empty")

    mime_type = image.content_type or DEFAULT_MIME_TYPE

    if image.size > config.max_upload_bytes:
        logger.warning("Upload rejected: %d bytes exceeds limit", image.size)
        raise PayloadTooLarge(f"File too large; max {config.max_upload_mb} MB")
    if not config.accepts_mime_type(mime_type):
        logger.warning("Upload rejected: content type %s not allowed", mime_type)
        raise UnsupportedMediaType(f"Unsupported file type: {mime_type}")

    return image, prompt if isinstance(prompt, str) else None


def _check_declared_length(request: Request, config: GatewayConfig) -> None:
    """Reject requests whose declared body size rules them out."""
    raw_length = request.headers.get("content-length")
    if raw_length is None:
        return
    try:
        declared = int(raw_length)
    except ValueError as exc:
        raise UploadValidationError("Invalid Content-Length header") from exc

    if declared > config.max_upload_bytes + MULTIPART_OVERHEAD_BYTES:
        logger.warning("Upload rejected: declared body of %d bytes exceeds limit", declared)
        raise PayloadTooLarge(f"File too large; max {config.max_upload_mb} MB")


def _bounded_request(request: Request, config: GatewayConfig) -> Request:
    """Wrap *request* so that reading past the body limit raises.

    The multipart parser pulls the body through ``receive``; counting there
    stops a body without ``Content-Length`` before it is spooled in full.
    """
    limit = config.max_upload_bytes + MULTIPART_OVERHEAD_BYTES
    received = 0

    async def receive() -> Message:
        nonlocal received
        message = await request.receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > limit:
                logger.warning("Upload rejected: body passed %d bytes while streaming", limit)
                raise PayloadTooLarge(f"File too large; max {config.max_upload_mb} MB")
        return message

    return Request(request.scope, receive)
