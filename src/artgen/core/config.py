"""Configuration management for the Artgen backend.

This module provides centralized configuration management using Pydantic Settings.
Values are read once at process start from environment variables, allowing the
service to be deployed without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (ARTGEN_* prefix, plus the bare names listed below)
2. .env file in the working directory
3. Default values defined in ArtgenConfig

The provider credentials, listen port and uploads root also accept the bare
variable names used by common hosting platforms::

    REPLICATE_API_TOKEN=r8_...
    OPENAI_API_KEY=sk-...
    PORT=3000
    UPLOADS_DIR=/app/uploads

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time::

    from artgen.core.config import config

    print(config.server_port)
    print(config.uploads_dir)

Directory Management
--------------------
The configuration creates the uploads root and one directory per storage
category (generated, customer, base) on initialization.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_CATEGORIES: tuple[str, ...] = ("generated", "customer", "base")


class ArtgenConfig(BaseSettings):
    """Main configuration for the Artgen backend.

    Attributes
    ----------
    Provider Settings:
        replicate_api_token : str | None
            Replicate API token. Generation fails with a 500 when unset.
        openai_api_key : str | None
            Optional OpenAI key forwarded to ``openai/gpt-image-1.5``. When
            unset, Replicate uses its own proxy credential.
        request_timeout : float
            Timeout in seconds for every outbound HTTP call.

    Model Settings:
        default_model : str
            Model used when a request names an unknown model.
        reject_unknown_models : bool
            Reject unknown model ids with a 400 instead of falling back.
        enable_legacy_fallback : bool
            Allow adapters with a fallback policy to retry once on "not found".

    Storage Settings:
        uploads_dir : Path
            Root of the ``<category>/<filename>`` image tree.
        public_url_prefix : str
            URL prefix under which ``uploads_dir`` is served.
        persist_generated : bool
            Save a local copy of every generated image.

    Server Settings:
        server_host : str
            Bind address.
        server_port : int
            Listen port.
        log_level : str
            Root logging level used by the CLI entry point.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ARTGEN_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Provider credentials
    replicate_api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ARTGEN_REPLICATE_API_TOKEN", "REPLICATE_API_TOKEN"),
        description="Replicate API token",
    )
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ARTGEN_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="Optional OpenAI key for openai/gpt-image-1.5",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for outbound HTTP calls",
    )

    # Model selection
    default_model: str = Field(
        default="seedream",
        description="Model used when the requested model is unknown",
    )
    reject_unknown_models: bool = Field(
        default=False,
        description="Reject unknown model ids instead of falling back to default_model",
    )
    enable_legacy_fallback: bool = Field(
        default=True,
        description="Retry once with a narrowed payload when a model is not found",
    )

    # Storage
    uploads_dir: Path = Field(
        default=Path("uploads"),
        validation_alias=AliasChoices("ARTGEN_UPLOADS_DIR", "UPLOADS_DIR"),
        description="Root directory for stored images",
    )
    public_url_prefix: str = Field(
        default="/uploads",
        description="URL prefix under which uploads_dir is served",
    )
    persist_generated: bool = Field(
        default=True,
        description="Save a local copy of every generated image",
    )

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("ARTGEN_SERVER_PORT", "PORT"),
        description="Server port",
        ge=1,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level for the CLI entry point",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the storage directory tree.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        for category in STORAGE_CATEGORIES:
            (self.uploads_dir / category).mkdir(parents=True, exist_ok=True)


# Global configuration instance, loaded once from the environment and .env file.
config = ArtgenConfig()
