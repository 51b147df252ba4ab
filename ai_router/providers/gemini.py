"""
Gemini adapter.

Calls the Generative Language REST API directly over HTTP. The API key
travels in a header so it never appears in a URL that an error message
could echo back.
"""

from typing import Any, Dict, Optional

import httpx

from ai_router.core.models import ProviderId

from .base import MAX_OUTPUT_TOKENS, TEMPERATURE, ProviderAdapter, ProviderReply, frame_prompt

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "gemini-pro"
TOP_K = 40
TOP_P = 0.95
# Same bounds the OpenAI client applies to DeepSeek calls
GEMINI_TIMEOUT = httpx.Timeout(600.0, connect=5.0)


class GeminiAdapter(ProviderAdapter):
    """High-capability provider for complex tasks on paid tiers."""

    provider_id = ProviderId.GEMINI
    display_name = "Gemini"

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        client: Optional[httpx.Client] = None
    ):
        super().__init__(api_key)
        self.model = model
        self.url = f"{base_url}/models/{model}:generateContent"
        self.client = client or httpx.Client(timeout=GEMINI_TIMEOUT)

    def build_payload(self, prompt: str, task_type: str) -> Dict[str, Any]:
        return {
            "contents": [{
                "parts": [{"text": frame_prompt(prompt, task_type)}]
            }],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "topK": TOP_K,
                "topP": TOP_P,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            }
        }

    def invoke(self, prompt: str, task_type: str) -> ProviderReply:
        try:
            response = self.client.post(
                self.url,
                json=self.build_payload(prompt, task_type),
                headers={"x-goog-api-key": self._api_key}
            )
        except httpx.HTTPError as e:
            raise self._error(f"Gemini request failed: {e.__class__.__name__}: {e}") from e

        if not response.is_success:
            raise self._error(f"Gemini API error: {response.text}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise self._error("Gemini returned invalid JSON", status_code=response.status_code) from e

        content = _extract_text(data)
        if not content:
            raise self._error("No content received from Gemini")

        return ProviderReply(content=content)


def _extract_text(data: Any) -> Optional[str]:
    """Pull candidates[0].content.parts[0].text out of a generateContent reply."""
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
