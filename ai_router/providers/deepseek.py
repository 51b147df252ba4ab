"""
DeepSeek adapter.

DeepSeek exposes an OpenAI-compatible chat completions API, so the adapter
drives it through the OpenAI client pointed at DeepSeek's base URL.
"""

from typing import Optional

from openai import APIError, APIStatusError, OpenAI

from ai_router.core.models import ProviderId

from .base import MAX_OUTPUT_TOKENS, TEMPERATURE, ProviderAdapter, ProviderReply, frame_prompt

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"
DEEPSEEK_MODEL = "deepseek-chat"


class DeepSeekAdapter(ProviderAdapter):
    """Low-cost provider used by every tier."""

    provider_id = ProviderId.DEEPSEEK
    display_name = "DeepSeek"

    def __init__(
        self,
        api_key: str,
        model: str = DEEPSEEK_MODEL,
        base_url: str = DEEPSEEK_BASE_URL,
        client: Optional[OpenAI] = None
    ):
        """Initialize the adapter.

        Args:
            api_key: DeepSeek API key (required)
            model: Chat model name
            base_url: API base URL
            client: Preconfigured OpenAI client (tests inject one)
        """
        super().__init__(api_key)
        self.model = model
        # No retries: a provider failure is reported once, immediately
        self.client = client or OpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    def invoke(self, prompt: str, task_type: str) -> ProviderReply:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": frame_prompt(prompt, task_type)}],
                temperature=TEMPERATURE,
                max_tokens=MAX_OUTPUT_TOKENS
            )
        except APIStatusError as e:
            raise self._error(f"DeepSeek API error: {e.message}", status_code=e.status_code) from e
        except APIError as e:
            raise self._error(f"DeepSeek API error: {e.message}") from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise self._error("No content received from DeepSeek")

        return ProviderReply(content=content)
