"""Gemini generateContent client for structured, search-grounded output."""

from typing import Any

import requests

from .config import REQUEST_TIMEOUT_SECONDS, GenAIConfig
from .models import GenerationError


class GenAIClient:
    """Client for the Generative Language API.

    Attributes:
        config: API key, model and endpoint settings
    """

    def __init__(self, config: GenAIConfig) -> None:
        """Initialize GenAIClient.

        Args:
            config: GenAIConfig with a non-empty api_key
        """
        if not config.api_key:
            raise ValueError("Gemini API key is not configured")
        self._config = config

    def generate(self, prompt: str, schema: dict[str, Any]) -> str:
        """Run one grounded generation constrained to a JSON schema.

        Args:
            prompt: Instruction text
            schema: Response schema the output must follow

        Returns:
            The raw JSON text produced by the model

        Raises:
            GenerationError: If the request fails or returns no text
        """
        url = f"{self._config.endpoint}/models/{self._config.model}:generateContent"
        try:
            response = requests.post(
                url,
                headers={"x-goog-api-key": self._config.api_key},
                json=self._build_body(prompt, schema),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise GenerationError(str(e)) from e

        if response.status_code != 200:
            raise GenerationError(
                self._error_message(response), status_code=response.status_code
            )

        text = self._extract_text(response.json())
        if not text:
            raise GenerationError("No response text from Gemini", status_code=200)
        return text

    def _build_body(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "tools": [{"google_search": {}}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }

    def _error_message(self, response: requests.Response) -> str:
        """Combine the API error status and message, e.g. RESOURCE_EXHAUSTED."""
        try:
            error = response.json().get("error", {})
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        status = error.get("status", "")
        message = error.get("message", "")
        return f"{status}: {message}" if status else message or f"HTTP {response.status_code}"

    def _extract_text(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)
