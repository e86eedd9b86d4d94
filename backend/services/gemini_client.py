"""Gemini client for the generateContent REST API."""
import time
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
import httpx

from config import (
    GEMINI_API_KEY,
    GEMINI_API_URL,
    GENERATION_TEMPERATURE,
    GENERATION_TOP_K,
    GENERATION_TOP_P,
    GENERATION_MAX_OUTPUT_TOKENS,
)

logger = logging.getLogger(__name__)

# Returned when the envelope lacks candidates[0].content.parts[0]
FALLBACK_NO_CANDIDATE = "Sorry, I couldn't generate a response at this time."
# Returned when the first part exists but carries no text
FALLBACK_EMPTY_TEXT = "Sorry, I couldn't generate a response."


@dataclass
class GeminiError:
    """Structured error response from Gemini operations."""
    code: str
    message: str
    details: Dict[str, Any]


class GeminiClientError(Exception):
    """Custom exception for Gemini client errors with structured error information."""

    def __init__(self, error: GeminiError):
        self.error = error
        super().__init__(error.message)


class GeminiClient:
    """Client for generating text completions with the Gemini API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None
    ):
        """
        Initialize the Gemini client.

        Args:
            api_key: Gemini API key (defaults to GEMINI_API_KEY from environment)
            api_url: generateContent endpoint (defaults to GEMINI_API_URL)
        """
        self.api_key = api_key or GEMINI_API_KEY
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY must be provided or set in environment")

        self.api_url = api_url or GEMINI_API_URL
        logger.info(f"GeminiClient initialized for {self.api_url}")

    def is_api_key_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def complete(self, prompt: str) -> str:
        """
        Generate a reply to a plain-text prompt.

        A response envelope that is valid JSON but lacks the expected text
        path yields fallback text instead of an error.

        Args:
            prompt: The user's message, sent verbatim as a single text part

        Returns:
            Generated text, or fallback text when the envelope has no text

        Raises:
            GeminiClientError: Transport failure, non-2xx status, or a body
                that is not JSON
        """
        start_time = time.time()
        payload = self.build_request(prompt)

        try:
            with httpx.Client() as client:
                response = client.post(
                    self.api_url,
                    params={"key": self.api_key},
                    json=payload
                )
        except httpx.TimeoutException as e:
            raise self._failure(
                "TIMEOUT_ERROR", "Request to Gemini API timed out.", start_time, e
            ) from e
        except httpx.RequestError as e:
            raise self._failure(
                "NETWORK_ERROR", f"Network error calling Gemini API: {str(e)}", start_time, e
            ) from e

        if response.status_code in (401, 403):
            raise self._failure(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                start_time,
                status_code=response.status_code
            )
        if response.status_code == 429:
            raise self._failure(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                start_time,
                status_code=response.status_code
            )
        if not response.is_success:
            raise self._failure(
                "API_ERROR",
                f"Gemini API request failed with status {response.status_code}: {response.text}",
                start_time,
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise self._failure(
                "INVALID_RESPONSE", f"Failed to parse Gemini API response: {str(e)}", start_time, e
            ) from e

        text = self.parse_response(data)
        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Generated response: chars={len(text)}, latency={latency_ms}ms")
        return text

    @staticmethod
    def build_request(prompt: str) -> Dict[str, Any]:
        """Build the generateContent payload for a single-turn prompt."""
        return {
            "contents": [
                {
                    "parts": [
                        {"text": prompt}
                    ]
                }
            ],
            "generationConfig": {
                "temperature": GENERATION_TEMPERATURE,
                "topK": GENERATION_TOP_K,
                "topP": GENERATION_TOP_P,
                "maxOutputTokens": GENERATION_MAX_OUTPUT_TOKENS
            }
        }

    @staticmethod
    def parse_response(data: Any) -> str:
        """
        Extract candidates[0].content.parts[0].text from a response envelope.

        Args:
            data: Decoded JSON body

        Returns:
            The stripped text, or one of the fallback strings
        """
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates:
            logger.warning("Gemini response has no candidates, using fallback text")
            return FALLBACK_NO_CANDIDATE

        first_candidate = candidates[0]
        content = first_candidate.get("content") if isinstance(first_candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
            logger.warning("Gemini response has no content parts, using fallback text")
            return FALLBACK_NO_CANDIDATE

        text = parts[0].get("text")
        if not isinstance(text, str):
            logger.warning("Gemini response part has no text, using fallback text")
            return FALLBACK_EMPTY_TEXT

        return text.strip()

    def _failure(
        self,
        code: str,
        message: str,
        start_time: float,
        cause: Optional[Exception] = None,
        status_code: Optional[int] = None
    ) -> GeminiClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {"latency_ms": latency_ms}
        if status_code is not None:
            details["status_code"] = status_code
        if cause is not None:
            details["original_error"] = str(cause)
            details["error_type"] = type(cause).__name__

        logger.error(
            f"Gemini error: code={code}, latency={latency_ms}ms, message={message}",
            extra={"error_code": code}
        )
        return GeminiClientError(GeminiError(code=code, message=message, details=details))
