"""Gemini generation client adapter.

This module wraps the ``google-genai`` SDK behind a single uniform call shape::

    (model identifier, ordered content parts) -> GenerationResult

The adapter owns no per-request state.  One :class:`GenerationClient` (and the
``genai.Client`` inside it) is built at application startup and shared,
read-only, by every request.

Content Parts
-------------
:class:`TextPart` and :class:`InlineDataPart` are the SDK-independent input
units.  ``InlineDataPart.data`` holds base64 text, the same encoding the
Gemini REST API uses on the wire; :meth:`as_payload` renders a part in that
wire shape for logging and inspection.

Failure Mapping
---------------
Upstream errors are not assumed to be reliable or safe to show to users.
Every failure (SDK error, transport error, empty response) becomes a failed
:class:`GenerationResult` whose ``error`` holds an internal diagnostic.  The
diagnostic is logged here; callers decide whether it ever reaches a client.

No retries are attempted and no timeout is imposed beyond the SDK defaults.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

from google import genai
from google.genai import types

from gemini_gateway.core.config import GatewayConfig
from gemini_gateway.core.errors import GenerationFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextPart:
    """A text instruction sent to the model."""

    text: str

    def as_payload(self) -> dict:
        return {"text": self.text}


@dataclass(frozen=True)
class InlineDataPart:
    """Inline binary content, base64-encoded, with its MIME type."""

    mime_type: str
    data: str

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> InlineDataPart:
        """Build a part by base64-encoding *raw*."""
        return cls(mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))

    def as_payload(self) -> dict:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


ContentPart = Union[TextPart, InlineDataPart]


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of a single generation call.

    Attributes:
        success: Whether the upstream call produced text.
        output: Generated text (empty on failure).
        error: Internal diagnostic (``None`` on success).
    """

    success: bool
    output: str = ""
    error: str | None = None

    @classmethod
    def ok(cls, output: str) -> GenerationResult:
        return cls(success=True, output=output)

    @classmethod
    def failure(cls, error: str) -> GenerationResult:
        return cls(success=False, error=error)

    def unwrap(self) -> str:
        """Return the output text, or raise :class:`GenerationFailed`."""
        if not self.success:
            raise GenerationFailed(details=self.error)
        return self.output


class GenerationClient:
    """Adapter around a shared ``genai.Client``.

    Attributes:
        _client: The SDK client.  Never mutated after construction.
    """

    def __init__(self, client: genai.Client) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: GatewayConfig) -> GenerationClient:
        """Build the adapter and its SDK client from configuration.

        Raises:
            RuntimeError: If no Gemini API key is configured.
        """
        if not config.gemini_api_key:
            raise RuntimeError("GEMINI_API_KEY is missing. Put it in .env")
        return cls(genai.Client(api_key=config.gemini_api_key))

    async def generate(self, model: str, parts: Sequence[ContentPart]) -> GenerationResult:
        """Send *parts* as one user turn to *model* and return the result.

        Args:
            model: Gemini model identifier.
            parts: Ordered content parts.

        Returns:
            A successful result with the generated text, or a failed result
            carrying an internal diagnostic.  This method does not raise for
            upstream failures.
        """
        try:
            contents = [
                types.Content(role="user", parts=[_to_sdk_part(part) for part in parts]),
            ]
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
            )
        except Exception as exc:
            logger.exception("Gemini error (model=%s)", model)
            return GenerationResult.failure(f"{type(exc).__name__}: {exc}")

        text = getattr(response, "text", None)
        if not text:
            logger.error("Gemini returned no text (model=%s)", model)
            return GenerationResult.failure("Upstream response contained no text")

        return GenerationResult.ok(text)

    async def generate_text(self, model: str, prompt: str) -> GenerationResult:
        """Shortcut for a single text part."""
        return await self.generate(model, [TextPart(prompt)])


def _to_sdk_part(part: ContentPart) -> types.Part:
    """Translate a content part into its ``google.genai.types`` form."""
    if isinstance(part, TextPart):
        return types.Part.from_text(text=part.text)
    if isinstance(part, InlineDataPart):
        # The SDK takes raw bytes and performs the base64 encoding itself.
        return types.Part.from_bytes(
            data=base64.b64decode(part.data),
            mime_type=part.mime_type,
        )
    raise TypeError(f"Unsupported content part: {type(part).__name__}")
