"""Shared pytest fixtures for Gemini Gateway tests."""

import shutil
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from gemini_gateway.api.main import create_app
from gemini_gateway.core.config import GatewayConfig
from gemini_gateway.core.generation import GenerationClient
from gemini_gateway.core.temp_store import TempFileStore


def make_fake_genai_client(text: str | None = "A cat.") -> MagicMock:
    """Create a stand-in for ``google.genai.Client``.

    Only the async surface the adapter uses is configured:
    ``client.aio.models.generate_content`` returns an object whose ``text``
    attribute is *text*.
    """
    sdk = MagicMock()
    sdk.aio.models.generate_content = AsyncMock(return_value=SimpleNamespace(text=text))
    return sdk


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> GatewayConfig:
    """Create a test configuration with a temporary upload directory.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        GatewayConfig instance for testing
    """
    return GatewayConfig(
        _env_file=None,
        gemini_api_key="test-key",
        model_name="gemini-1.5-flash",
        upload_dir=str(temp_dir / "uploads"),
        max_upload_mb=10,
    )


@pytest.fixture
def store(test_config: GatewayConfig) -> TempFileStore:
    """Temp store rooted in the test upload directory."""
    return TempFileStore(test_config.upload_dir, test_config.max_upload_bytes)


@pytest.fixture
def fake_sdk() -> MagicMock:
    """Fake Gemini SDK client that answers ``"A cat."``."""
    return make_fake_genai_client()


@pytest.fixture
def generation_client(fake_sdk: MagicMock) -> GenerationClient:
    """Generation adapter wired to the fake SDK client."""
    return GenerationClient(fake_sdk)


@pytest.fixture
def test_client(
    test_config: GatewayConfig,
    generation_client: GenerationClient,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with lifespan started and the fake SDK injected."""
    app = create_app(test_config, generation_client)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Roughly 200 KB of JPEG-prefixed bytes."""
    return b"\xff\xd8\xff\xe0" + bytes(range(256)) * 800


@pytest.fixture
def stored_files(test_config: GatewayConfig):
    """Return a callable listing every file held in the upload directory."""

    def _list() -> list[Path]:
        return [p for p in test_config.upload_dir.iterdir() if p.is_file()]

    return _list


@pytest.fixture
def make_sdk():
    """Factory fixture building fake SDK clients with a chosen reply text."""
    return make_fake_genai_client
