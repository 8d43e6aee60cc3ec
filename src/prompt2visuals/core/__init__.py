"""Core functionality for Prompt2Visuals.

Modules
-------
config
    Environment-based configuration using Pydantic Settings.
provider_models
    Boundary schemas for Freepik and OpenAI response JSON.
providers
    Async HTTP clients for the stock photo and image generation providers.
search
    Concurrent fan-out search with per-provider degradation.
transform
    Crop, resize and re-encode pipeline built on Pillow.
"""

from prompt2visuals.core.config import Prompt2VisualsConfig, config
from prompt2visuals.core.providers import FreepikClient, OpenAIImageClient, ProviderError
from prompt2visuals.core.transform import TransformError, UnsupportedSourceError

__all__ = [
    "Prompt2VisualsConfig",
    "config",
    "FreepikClient",
    "OpenAIImageClient",
    "ProviderError",
    "TransformError",
    "UnsupportedSourceError",
]
