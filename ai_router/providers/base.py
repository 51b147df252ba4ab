"""
Provider adapter contract.

Every upstream AI provider is reached through an adapter that turns a
canonical (prompt, task type) pair into the provider's wire format and the
reply back into plain text.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ai_router.core.errors import ProviderError
from ai_router.core.models import ProviderId

# Sampling settings shared by the built-in adapters
TEMPERATURE = 0.7
MAX_OUTPUT_TOKENS = 2048

REDACTED = "***"


def frame_prompt(prompt: str, task_type: str) -> str:
    """Prefix the prompt with its task type so replies are comparable across providers."""
    return f"Task Type: {task_type}\n\n{prompt}"


@dataclass(frozen=True)
class ProviderReply:
    """Canonical provider reply."""
    content: str


class ProviderAdapter(ABC):
    """Base class for provider adapters.

    Subclasses set `provider_id` and `display_name` and implement invoke().
    """

    provider_id: ProviderId
    display_name: str

    def __init__(self, api_key: str):
        if not api_key or not api_key.strip():
            raise ValueError(f"{self.display_name} API key is required and cannot be empty")
        self._api_key = api_key

    @abstractmethod
    def invoke(self, prompt: str, task_type: str) -> ProviderReply:
        """Call the provider.

        Raises:
            ProviderError: If the call fails or the reply has no content
        """

    def _error(self, message: str, status_code: Optional[int] = None) -> ProviderError:
        """Build a ProviderError with the credential scrubbed from the message."""
        return ProviderError(
            provider=self.provider_id.value,
            message=self._scrub(message),
            status_code=status_code
        )

    def _scrub(self, text: str) -> str:
        return (text or "").replace(self._api_key, REDACTED)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider_id={self.provider_id.value!r})"
