"""
Base provider interface for metadata inference.

A provider takes an instruction prompt plus a set of encoded images and
returns the model's free-text answer.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class MetadataInferenceProvider(ABC):
    """
    Abstract base class for generative-model endpoints.

    Image parts use the inline-data shape:
    ``{"inline_data": {"mime_type": "image/jpeg", "data": "<base64>"}}``.
    """

    @abstractmethod
    def generate_text(self, prompt: str, image_parts: List[Dict[str, Any]]) -> str:
        """
        Submit the prompt and images and return the model's text.

        Raises:
            MetadataGenerationException: If the provider is unreachable, rejects
                the request or returns no text
        """
        pass

    @abstractmethod
    def check_health(self) -> bool:
        """Return True if the provider is configured and reachable."""
        pass
