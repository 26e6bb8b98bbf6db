"""Gemini Gateway - HTTP pass-through for Google Gemini text and image prompts."""

__version__ = "0.1.0"

from gemini_gateway.core.config import GatewayConfig, config
from gemini_gateway.core.generation import GenerationClient, GenerationResult

__all__ = [
    "GatewayConfig",
    "GenerationClient",
    "GenerationResult",
    "config",
]
