"""Utilities to bridge the sign recognition pipeline with a web frontend."""

from .service import GestureInferenceService

__all__ = ["GestureInferenceService"]
