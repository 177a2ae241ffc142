"""
Metadata inference provider abstraction.

Generative-model endpoints that turn video frames into text. Gemini is the
only provider today; ``get_inference_provider`` is the FastAPI dependency
that hands it out.
"""

from typing import Optional

from .base import MetadataInferenceProvider
from .gemini_provider import GeminiProvider

_provider: Optional[MetadataInferenceProvider] = None


def get_inference_provider() -> MetadataInferenceProvider:
    """Return the process-wide provider, creating it on first use."""
    global _provider

    if _provider is None:
        _provider = GeminiProvider()
    return _provider


__all__ = [
    'MetadataInferenceProvider',
    'GeminiProvider',
    'get_inference_provider',
]
