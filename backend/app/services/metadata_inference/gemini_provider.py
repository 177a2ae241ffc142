"""
Gemini provider for metadata inference.

Calls the Gemini ``generateContent`` REST endpoint with the instruction
prompt and inline JPEG frames. The API key is passed as the ``key`` query
parameter.
"""

import time
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from app.config import settings
from app.exceptions import MetadataGenerationException
from .base import MetadataInferenceProvider


logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class GeminiProvider(MetadataInferenceProvider):
    """Google Gemini implementation of MetadataInferenceProvider."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.Client] = None
    ):
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_api_base_url).rstrip("/")

        self.client = client or httpx.Client(timeout=settings.inference_timeout_seconds)

        logger.info(
            "Initialized Gemini provider",
            extra={
                "model": self.model,
                "has_api_key": bool(self.api_key),
                "timeout_seconds": settings.inference_timeout_seconds
            }
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    @staticmethod
    def _extract_text(response_data: Dict[str, Any]) -> Optional[str]:
        """Pull the first candidate's first text part out of a generateContent body."""
        candidates = response_data.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        for part in parts:
            if isinstance(part, dict) and part.get("text"):
                return part["text"]
        return None

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception(_is_retryable),
        reraise=True
    )
    def _post(self, request_body: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.post(
            self.endpoint,
            params={"key": self.api_key},
            headers={"Content-Type": "application/json"},
            json=request_body
        )
        response.raise_for_status()
        return response.json()

    def generate_text(self, prompt: str, image_parts: List[Dict[str, Any]]) -> str:
        if not self.api_key:
            logger.error("Gemini API key not configured")
            raise MetadataGenerationException(
                "Gemini API key is not configured. Please set GEMINI_API_KEY environment variable.",
                details={"provider": "gemini"}
            )

        request_body = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt}, *image_parts],
                }
            ]
        }

        logger.info(
            "Calling Gemini to generate video metadata",
            extra={"provider": "gemini", "model": self.model, "image_count": len(image_parts)}
        )
        start_time = time.time()

        try:
            response_data = self._post(request_body)
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_detail = e.response.text
            logger.error(
                f"Gemini API error: {status_code}",
                extra={"provider": "gemini", "status_code": status_code, "error_detail": error_detail[:500]}
            )
            if status_code in (401, 403):
                message = "Gemini authentication failed. Please check your API key."
            elif status_code == 429:
                message = "Gemini rate limit exceeded. Please try again later."
            else:
                message = f"Gemini API error: {status_code}"
            raise MetadataGenerationException(
                message,
                details={"status_code": status_code, "error": error_detail[:500]}
            )
        except httpx.TransportError as e:
            logger.error(
                "Gemini connection error",
                extra={"provider": "gemini", "error": str(e), "error_type": type(e).__name__}
            )
            raise MetadataGenerationException(
                "Failed to connect to Gemini.",
                details={"error": str(e)}
            )
        except ValueError as e:
            logger.error("Gemini returned a non-JSON body", extra={"provider": "gemini"})
            raise MetadataGenerationException(
                "Gemini returned an invalid response.",
                details={"error": str(e)}
            )

        text = self._extract_text(response_data)
        if not text:
            logger.error(
                "Gemini response contained no text",
                extra={"provider": "gemini", "response_preview": str(response_data)[:500]}
            )
            raise MetadataGenerationException("Gemini response contained no text")

        logger.debug(
            "Gemini response received",
            extra={
                "provider": "gemini",
                "response_time_seconds": round(time.time() - start_time, 2),
                "response_length": len(text)
            }
        )
        return text

    def check_health(self) -> bool:
        if not self.api_key:
            logger.warning("Gemini API key not configured")
            return False

        try:
            response = self.client.get(
                f"{self.base_url}/models/{self.model}",
                params={"key": self.api_key},
                timeout=10.0
            )
            if response.status_code == 200:
                logger.info("Gemini health check passed", extra={"provider": "gemini"})
                return True
            logger.warning(
                f"Gemini health check failed with status {response.status_code}",
                extra={"provider": "gemini", "status_code": response.status_code}
            )
            return False
        except httpx.HTTPError as e:
            logger.error(f"Gemini health check failed: {e}", extra={"provider": "gemini"})
            return False
