"""Tests for gemini_gateway.api.orchestrator — request composition helpers.

The full request lifecycle (accept, store, generate, clean up) is exercised
through HTTP in ``tests/integration/test_api.py``.  These tests cover the
pieces that do not need a live request:

- Default prompt substitution.
- Construction of the ``[instruction, image]`` content parts.
"""

from __future__ import annotations

import asyncio
import base64

import pytest

from gemini_gateway.api.orchestrator import ImageAnalysisOrchestrator
from gemini_gateway.api.uploads import Upload
from gemini_gateway.core.errors import NotFound
from gemini_gateway.core.generation import InlineDataPart, TextPart


@pytest.fixture
def orchestrator(test_config, store, generation_client) -> ImageAnalysisOrchestrator:
    return ImageAnalysisOrchestrator(test_config, store, generation_client)


class TestResolvePrompt:
    """Test ImageAnalysisOrchestrator.resolve_prompt()."""

    def test_prompt_kept(self, orchestrator):
        assert orchestrator.resolve_prompt("describe") == "describe"

    @pytest.mark.parametrize("prompt", [None, "", "   ", "\n\t"])
    def test_blank_prompt_uses_default(self, orchestrator, prompt):
        assert orchestrator.resolve_prompt(prompt) == "Analyze this image"


class TestBuildParts:
    """Test ImageAnalysisOrchestrator.build_parts()."""

    def test_two_parts_in_order(self, orchestrator, store, jpeg_bytes):
        async def scenario():
            handle = await store.put(jpeg_bytes)
            upload = Upload(handle, "cat.jpg", "image/jpeg", len(jpeg_bytes))
            return await orchestrator.build_parts(upload, "describe")

        parts = asyncio.run(scenario())

        assert parts == [
            TextPart("describe"),
            InlineDataPart("image/jpeg", base64.b64encode(jpeg_bytes).decode("ascii")),
        ]
        assert [p.as_payload() for p in parts] == [
            {"text": "describe"},
            {
                "inlineData": {
                    "mimeType": "image/jpeg",
                    "data": base64.b64encode(jpeg_bytes).decode("ascii"),
                },
            },
        ]

    def test_missing_prompt_gets_default(self, orchestrator, store):
        async def scenario():
            handle = await store.put(b"png-bytes")
            return await orchestrator.build_parts(Upload(handle, "a.png", "image/png", 9), None)

        parts = asyncio.run(scenario())
        assert parts[0] == TextPart("Analyze this image")

    def test_deleted_upload_raises(self, orchestrator, store):
        async def scenario():
            handle = await store.put(b"data")
            await store.delete(handle)
            await orchestrator.build_parts(Upload(handle, "a.png", "image/png", 4), "x")

        with pytest.raises(NotFound):
            asyncio.run(scenario())
