"""Configuration management for the Gemini Gateway.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the GATEWAY_ prefix,
allowing the same handler code to serve every deployment variant (model name,
upload size limit, content-type policy) without forking it.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (GATEWAY_* prefix, plus the unprefixed
   ``GEMINI_API_KEY`` and ``PORT`` conventions)
2. .env file in the project root
3. Default values defined in GatewayConfig

Example .env file:
    GEMINI_API_KEY=your-key
    GATEWAY_MODEL_NAME=gemini-1.5-flash
    GATEWAY_MAX_UPLOAD_MB=10
    GATEWAY_ALLOWED_MIME_TYPES=["image/jpeg", "image/png", "image/webp"]
    GATEWAY_UPLOAD_DIR=uploads

List-valued fields (``allowed_mime_types``, ``cors_origins``) are read from
the environment as JSON arrays.

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
It is read-only after startup: request handlers receive it through
``app.state`` and never modify it.

Usage Example
-------------
    from gemini_gateway.core.config import config

    print(config.model_name)
    print(config.max_upload_bytes)
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayConfig(BaseSettings):
    """Main configuration for the Gemini Gateway.

    Attributes
    ----------
    Generation Settings:
        gemini_api_key : str | None
            API credential for the Gemini service
        model_name : str
            Gemini model identifier used by every endpoint
        test_prompt : str
            Prompt sent by the ``/test-gemini`` probe
        default_image_prompt : str
            Instruction used when ``/analyze-image`` receives no prompt

    Upload Settings:
        max_upload_mb : int
            Maximum size of an uploaded image, in megabytes
        allowed_mime_types : list[str]
            Declared content types accepted for uploads (empty = accept all)
        upload_dir : Path
            Directory holding transient per-request upload files

    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Listening port (1-65535)
        cors_origins : list[str]
            Origins allowed by the CORS middleware
        expose_error_details : bool
            Include upstream diagnostics in 500 responses (off by default)
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
            Root logging level configured by the CLI entry point

    Notes
    -----
    - ``upload_dir`` is created automatically if it doesn't exist
    - To modify config, set environment variables and restart the application
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GATEWAY_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Generation settings
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GATEWAY_GEMINI_API_KEY", "GEMINI_API_KEY"),
        description="API key for the Gemini generative-AI service",
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model identifier",
    )
    test_prompt: str = Field(
        default="Say hello",
        description="Prompt sent by the /test-gemini probe",
    )
    default_image_prompt: str = Field(
        default="Analyze this image",
        description="Instruction used when no prompt accompanies an image",
    )

    # Upload settings
    max_upload_mb: int = Field(
        default=10,
        description="Maximum upload size in megabytes",
        ge=1,
        le=100,
    )
    allowed_mime_types: list[str] = Field(
        default_factory=list,
        description="Accepted upload content types (empty list accepts any type)",
    )
    upload_dir: Path = Field(
        default=Path("uploads"),
        description="Directory for transient upload files",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("GATEWAY_SERVER_PORT", "PORT"),
        description="Server port",
        ge=1,
        le=65535,
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )
    expose_error_details: bool = Field(
        default=False,
        description="Return upstream diagnostic text in 500 responses",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the upload directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.upload_dir.mkdir(parents=True, exist_ok=True)

    @property
    def max_upload_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_upload_mb * 1024 * 1024

    def accepts_mime_type(self, mime_type: str) -> bool:
        """Return True if *mime_type* passes the configured allowlist.

        Matching is case-insensitive and ignores parameters such as
        ``; charset=...``.  An empty allowlist accepts every type.
        """
        if not self.allowed_mime_types:
            return True
        base_type = mime_type.split(";", 1)[0].strip().lower()
        return base_type in {allowed.lower() for allowed in self.allowed_mime_types}


# Global configuration instance
# Loads values from environment variables (GATEWAY_* prefix) and .env file.
config = GatewayConfig()
