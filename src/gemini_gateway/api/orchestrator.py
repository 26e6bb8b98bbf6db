"""Per-request orchestration for ``POST /analyze-image``.

:class:`ImageAnalysisOrchestrator` composes the upload acceptor, the temp file
store and the generation client.  A request moves through these stages in
strict order::

    Received -> Validating -> Stored -> Encoding -> AwaitingGeneration
             -> Responding -> Cleaned

Validation failures end the request before anything is stored.  Once a file
is stored, every exit path (success, upstream failure, an I/O error while
encoding, or cancellation of the handling task) removes it exactly once via
the scope :func:`~gemini_gateway.api.uploads.accept_upload` opens on it.

The orchestrator holds only read-only collaborators, injected at startup, so a
single instance serves all concurrent requests.
"""

from __future__ import annotations

import logging

from fastapi import Request

from gemini_gateway.api.uploads import Upload, accept_upload
from gemini_gateway.core.config import GatewayConfig
from gemini_gateway.core.generation import (
    ContentPart,
    GenerationClient,
    InlineDataPart,
    TextPart,
)
from gemini_gateway.core.temp_store import TempFileStore

logger = logging.getLogger(__name__)


class ImageAnalysisOrchestrator:
    """Runs the upload-to-Gemini lifecycle for one request at a time.

    Attributes:
        _config: Model name, default prompt and upload policy.
        _store: Temp storage for uploaded files.
        _client: Shared generation client adapter.
    """

    def __init__(
        self,
        config: GatewayConfig,
        store: TempFileStore,
        client: GenerationClient,
    ) -> None:
        self._config = config
        self._store = store
        self._client = client

    async def analyze(self, request: Request) -> str:
        """Analyse the image carried by *request* and return the model output.

        Args:
            request: Multipart request with an ``image`` file and an optional
                ``prompt`` text field.

        Returns:
            The generated text.

        Raises:
            UploadValidationError: The upload is missing or rejected (400).
            GenerationFailed: The upstream call failed (500).
            InternalIOError: Temp storage failed (500).
        """
        async with accept_upload(request, self._store, self._config) as (upload, prompt):
            logger.info(
                "Image received: %.1f KB, %s",
                upload.size / 1024,
                upload.mime_type,
            )
            parts = await self.build_parts(upload, prompt)
            result = await self._client.generate(self._config.model_name, parts)
            return result.unwrap()

    async def build_parts(self, upload: Upload, prompt: str | None) -> list[ContentPart]:
        """Read the stored upload and build ``[instruction, image]`` parts."""
        raw = await self._store.get(upload.handle)
        return [
            TextPart(self.resolve_prompt(prompt)),
            InlineDataPart.from_bytes(raw, upload.mime_type),
        ]

    def resolve_prompt(self, prompt: str | None) -> str:
        """Return *prompt*, or the default instruction if it is blank."""
        if prompt and prompt.strip():
            return prompt
        return self._config.default_image_prompt
