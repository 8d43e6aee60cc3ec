"""Prompt2Visuals - stock photo search, AI generation and image export."""

__version__ = "0.1.0"

from prompt2visuals.core.config import Prompt2VisualsConfig, config

__all__ = [
    "Prompt2VisualsConfig",
    "config",
]
