"""Configuration management for Prompt2Visuals.

All configuration is loaded once from environment variables with the
``PROMPT2VISUALS_`` prefix using Pydantic Settings, and is read-only
afterwards.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (PROMPT2VISUALS_* prefix)
2. .env file in the project root
3. Default values defined in Prompt2VisualsConfig

Example .env file:
    PROMPT2VISUALS_FREEPIK_API_KEY=fpk_...
    PROMPT2VISUALS_OPENAI_API_KEY=sk-...
    PROMPT2VISUALS_MAX_RESULTS_PER_SOURCE=4
    PROMPT2VISUALS_LICENSE_FILTER=free

Global Configuration Instance
------------------------------
A global ``config`` instance is created at module import time.  The FastAPI
lifespan stores it on ``app.state`` and route handlers receive it through
the ``get_config`` dependency, so handlers never read the environment
themselves.

Usage Example
-------------
    from prompt2visuals.core.config import config

    if config.has_search_credentials:
        ...
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Prompt2VisualsConfig(BaseSettings):
    """Main configuration for Prompt2Visuals.

    Attributes
    ----------
    Provider credentials:
        freepik_api_key : str | None
            API key for the Freepik stock photo API.
        openai_api_key : str | None
            API key for the OpenAI Images API.

    Provider endpoints:
        freepik_api_url : str
            Base URL of the Freepik REST API.
        openai_api_url : str
            Base URL of the OpenAI REST API.
        openai_image_model : str
            Image generation model name.

    Search defaults:
        max_results_per_source : int
            Maximum items returned per provider by ``GET /search`` (1-10).
        safe_search : bool
            Default safe-search flag passed to the stock provider.
        license_filter : Literal["free", "all"]
            Default license filter for stock results.
        default_generate_count : int
            Number of images ``POST /ai-generate`` requests when the client
            does not say (1-10).

    Server:
        server_host : str
            uvicorn bind address.
        server_port : int
            uvicorn port (1024-65535).

    Notes
    -----
    - The instance is frozen; set environment variables and restart to
      change values.
    - Missing credentials are not an import-time error.  Handlers check them
      per request and answer with HTTP 500 before any outbound call.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROMPT2VISUALS_",
        case_sensitive=False,
        frozen=True,
    )

    # Provider credentials
    freepik_api_key: str | None = Field(
        default=None,
        description="API key for the Freepik stock photo API",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the OpenAI Images API",
    )

    # Provider endpoints
    freepik_api_url: str = Field(
        default="https://api.freepik.com/v1",
        description="Base URL of the Freepik REST API",
    )
    openai_api_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI REST API",
    )
    openai_image_model: str = Field(
        default="gpt-image-1",
        description="OpenAI image generation model",
    )

    # Search defaults
    max_results_per_source: int = Field(
        default=4,
        description="Maximum results returned per provider",
        ge=1,
        le=10,
    )
    safe_search: bool = Field(
        default=True,
        description="Default safe-search flag for stock photo search",
    )
    license_filter: Literal["free", "all"] = Field(
        default="free",
        description="Default license filter ('free' keeps free-licensed items only)",
    )
    default_generate_count: int = Field(
        default=4,
        description="Images generated by /ai-generate when n is omitted",
        ge=1,
        le=10,
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )

    @property
    def has_search_credentials(self) -> bool:
        """True when both provider keys needed by ``GET /search`` are set."""
        return bool(self.freepik_api_key) and bool(self.openai_api_key)


# Global configuration instance, loaded once from PROMPT2VISUALS_* variables
# and the .env file.
config = Prompt2VisualsConfig()
