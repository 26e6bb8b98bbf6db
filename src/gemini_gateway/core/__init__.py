"""Core components of the Gemini Gateway.

- **GatewayConfig**: configuration management using Pydantic Settings
- **TempFileStore**: bounded per-request temporary file storage
- **GenerationClient**: adapter over the ``google-genai`` SDK
- **errors**: the ``GatewayError`` taxonomy mapped to HTTP responses
"""

from gemini_gateway.core.config import GatewayConfig, config
from gemini_gateway.core.errors import GatewayError
from gemini_gateway.core.generation import GenerationClient, GenerationResult
from gemini_gateway.core.temp_store import TempFileStore

__all__ = [
    "GatewayConfig",
    "GatewayError",
    "GenerationClient",
    "GenerationResult",
    "TempFileStore",
    "config",
]
