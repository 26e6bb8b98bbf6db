"""Tests for gemini_gateway.api.uploads — the upload acceptor.

These tests drive :func:`accept_upload` with a raw ASGI ``receive`` so that
the number of body bytes pulled from the client can be observed directly.

Tests cover:
- Streamed bodies with no Content-Length are cut off near the limit.
- Streamed bodies under the limit are stored and released with the block.
- The stored file is removed even if closing the form fails.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
from fastapi import Request
from starlette.datastructures import UploadFile

from gemini_gateway.api.uploads import MULTIPART_OVERHEAD_BYTES, accept_upload
from gemini_gateway.core.config import GatewayConfig
from gemini_gateway.core.errors import PayloadTooLarge
from gemini_gateway.core.temp_store import TempFileStore

MB = 1024 * 1024
CHUNK = 64 * 1024
BOUNDARY = "gateway-test-boundary"


def _multipart_chunks(payload_size: int, prompt: str | None = None) -> Iterator[bytes]:
    """Yield a multipart body carrying one ``image`` part, CHUNK bytes at a time."""
    if prompt is not None:
        yield (
            f"--{BOUNDARY}\r\n"
            'Content-Disposition: form-data; name="prompt"\r\n\r\n'
            f"{prompt}\r\n"
        ).encode()
    yield (
        f"--{BOUNDARY}\r\n"
        'Content-Disposition: form-data; name="image"; filename="big.jpg"\r\n'
        "Content-Type: image/jpeg\r\n\r\n"
    ).encode()
    remaining = payload_size
    while remaining:
        size = min(CHUNK, remaining)
        yield b"\xff" * size
        remaining -= size
    yield f"\r\n--{BOUNDARY}--\r\n".encode()


def _streamed_request(chunks: Iterator[bytes], consumed: list[int]) -> Request:
    """Build a chunked POST with no Content-Length header."""
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/analyze-image",
        "query_string": b"",
        "headers": [
            (b"content-type", f"multipart/form-data; boundary={BOUNDARY}".encode()),
            (b"transfer-encoding", b"chunked"),
        ],
    }

    async def receive():
        chunk = next(chunks, None)
        if chunk is None:
            return {"type": "http.request", "body": b"", "more_body": False}
        consumed.append(len(chunk))
        return {"type": "http.request", "body": chunk, "more_body": True}

    return Request(scope, receive)


@pytest.fixture
def small_config(test_config: GatewayConfig) -> GatewayConfig:
    return test_config.model_copy(update={"max_upload_mb": 1})


@pytest.fixture
def small_store(small_config: GatewayConfig) -> TempFileStore:
    return TempFileStore(small_config.upload_dir, small_config.max_upload_bytes)


class TestStreamedBodyLimit:
    """Test the running byte count on bodies without Content-Length."""

    def test_oversized_stream_stops_early(self, small_config, small_store, stored_files):
        """A 20 MB chunked body against a 1 MB limit is not read to the end."""
        consumed: list[int] = []
        request = _streamed_request(_multipart_chunks(20 * MB), consumed)

        async def scenario():
            async with accept_upload(request, small_store, small_config):
                pass

        with pytest.raises(PayloadTooLarge):
            asyncio.run(scenario())

        limit = small_config.max_upload_bytes + MULTIPART_OVERHEAD_BYTES
        assert sum(consumed) <= limit + CHUNK
        assert sum(consumed) < 20 * MB
        assert stored_files() == []

    def test_small_stream_accepted_and_released(self, small_config, small_store, stored_files):
        consumed: list[int] = []
        request = _streamed_request(_multipart_chunks(512 * 1024, prompt="describe"), consumed)
        seen = {}

        async def scenario():
            async with accept_upload(request, small_store, small_config) as (upload, prompt):
                seen["exists"] = small_store.exists(upload.handle)
                seen["upload"] = upload
                seen["prompt"] = prompt

        asyncio.run(scenario())

        assert seen["exists"] is True
        assert seen["upload"].size == 512 * 1024
        assert seen["upload"].mime_type == "image/jpeg"
        assert seen["prompt"] == "describe"
        assert stored_files() == []


class TestFormCloseFailure:
    """Test that a stored upload is released if closing the form fails."""

    @pytest.mark.parametrize("error", [RuntimeError("close failed"), asyncio.CancelledError()])
    def test_stored_file_removed(
        self, monkeypatch, small_config, small_store, stored_files, error
    ):
        original_close = UploadFile.close

        async def failing_close(self):
            await original_close(self)
            raise error

        monkeypatch.setattr(UploadFile, "close", failing_close)
        request = _streamed_request(_multipart_chunks(1024), [])
        entered = []

        async def scenario():
            with pytest.raises(type(error)):
                async with accept_upload(request, small_store, small_config):
                    entered.append(True)

        asyncio.run(scenario())

        assert entered == []
        assert stored_files() == []
