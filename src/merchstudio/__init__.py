"""Merch Studio - AI design generation back end for a merchandise shop."""

__version__ = "0.1.0"

from merchstudio.core.config import StudioConfig, config
from merchstudio.core.pipeline import DesignPipeline
from merchstudio.core.providers import ImageProvider, provider_registry

__all__ = [
    "DesignPipeline",
    "ImageProvider",
    "provider_registry",
    "StudioConfig",
    "config",
]
