"""Configuration management for Merch Studio.

Process-level settings are managed with Pydantic Settings.  They are loaded
from environment variables with the ``MERCHSTUDIO_`` prefix, allowing the
storage layout, timeouts and server binding to change without code edits.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:

1. Environment variables (``MERCHSTUDIO_*`` prefix)
2. ``.env`` file in the project root
3. Default values defined in :class:`StudioConfig`

Example ``.env`` file::

    MERCHSTUDIO_DATA_DIR=data
    MERCHSTUDIO_ASSETS_DIR=generated_tshirts
    MERCHSTUDIO_REQUEST_TIMEOUT=180
    MERCHSTUDIO_SERVER_PORT=7860

API keys and model names are *not* process settings.  They live in
``config.json`` inside ``data_dir`` and are edited at runtime from the admin
Config page; see :mod:`merchstudio.core.settings_store`.

Global Configuration Instance
------------------------------
A global ``config`` instance is created at import time and serves as the
single source of truth for the application.  Tests build their own
:class:`StudioConfig` pointing at temporary directories.

Directory Management
--------------------
The configuration creates its directories on initialisation:

- ``data_dir``: JSON stores, ``config.json``, products and orders
- ``assets_dir``: generated and uploaded images
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StudioConfig(BaseSettings):
    """Main configuration for Merch Studio.

    Attributes
    ----------
    Paths:
        data_dir : Path
            Directory holding every JSON store file and ``config.json``.
        assets_dir : Path
            The single asset directory for generated and uploaded images.
        assets_url_prefix : str
            URL path at which ``assets_dir`` is served.

    Providers:
        request_timeout : float
            Timeout in seconds for one outbound provider call.
        openai_base_url : str
            Base URL of the OpenAI REST API.
        gemini_base_url : str
            Base URL of the Gemini ``generateContent`` API.
        openai_image_quality : str
            ``quality`` value sent with OpenAI image requests.
        openai_output_format : str
            ``output_format`` value sent with OpenAI image requests.

    Uploads:
        max_upload_bytes : int
            Upper bound for reference images and direct uploads.

    Server:
        server_host : str
            Bind address for uvicorn.
        server_port : int
            Bind port for uvicorn (1024-65535).
        log_level : str
            Root logging level used by the CLI entry point.

    Notes
    -----
    - Directories are created automatically if they don't exist.
    - To change values, set environment variables and restart.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MERCHSTUDIO_",
        case_sensitive=False,
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding JSON stores, config.json, products and orders",
    )
    assets_dir: Path = Field(
        default=Path("generated_tshirts"),
        description="Directory for generated and uploaded images",
    )
    assets_url_prefix: str = Field(
        default="/generated_tshirts",
        description="URL path the asset directory is mounted at",
    )

    # Providers
    request_timeout: float = Field(
        default=180.0,
        gt=0,
        description="Timeout in seconds for one image provider request",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI REST API base URL",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )
    openai_image_quality: Literal["low", "medium", "high", "auto"] = Field(
        default="high",
        description="Quality requested from the OpenAI image endpoint",
    )
    openai_output_format: Literal["png", "jpeg", "webp"] = Field(
        default="png",
        description="Output format requested from the OpenAI image endpoint",
    )

    # Uploads
    max_upload_bytes: int = Field(
        default=20 * 1024 * 1024,
        ge=1024,
        description="Maximum size of a reference image or uploaded design",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.assets_dir.mkdir(parents=True, exist_ok=True)

    @property
    def settings_file(self) -> Path:
        """Path to the runtime ``config.json`` holding API keys and models."""
        return self.data_dir / "config.json"

    @property
    def products_file(self) -> Path:
        """Path to ``merch_products.json``."""
        return self.data_dir / "merch_products.json"

    @property
    def orders_file(self) -> Path:
        """Path to ``orders.json``."""
        return self.data_dir / "orders.json"

    @property
    def ideas_file(self) -> Path:
        """Path to ``tshirt_ideas.json``."""
        return self.data_dir / "tshirt_ideas.json"

    @property
    def edits_dir(self) -> Path:
        """Directory holding one edit history per edited design."""
        return self.data_dir / "edit_designs"


# Global configuration instance, loaded from MERCHSTUDIO_* variables and .env.
config = StudioConfig()
