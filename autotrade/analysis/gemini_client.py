"""Google Generative Language (Gemini) REST client.

A thin text-in / text-out wrapper; prompt construction and response
validation live with the callers.
"""

import logging

from autotrade.config import Config
from autotrade.data.http import request_json
from autotrade.errors import ConfigurationError, ProviderError

logger = logging.getLogger("autotrade.llm")

_PROVIDER = "gemini"
_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiClient:
    """Async client for ``models/{model}:generateContent``."""

    def __init__(self, config: Config, temperature: float = 0.3) -> None:
        self._api_key = config.google_ai_api_key
        self._model = config.google_ai_model
        self._temperature = temperature

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def generate(self, prompt: str, max_output_tokens: int = 1024) -> str:
        """Send *prompt* and return the first candidate's text.

        Raises:
            ConfigurationError: no API key configured.
            TransientProviderError: network failure, 429 or 5xx.
            ProviderError: any other failure or an empty response.
        """
        if not self._api_key:
            raise ConfigurationError(_PROVIDER, "GOOGLE_AI_API_KEY not configured")

        url = f"{_BASE_URL}/{self._model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._temperature,
                "topK": 40,
                "topP": 0.8,
                "maxOutputTokens": max_output_tokens,
            },
        }
        data = await request_json(
            "post",
            url,
            _PROVIDER,
            headers={"x-goog-api-key": self._api_key},
            json=body,
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = ""
        if not text:
            raise ProviderError(_PROVIDER, "empty response")
        return text
