"""
Provider adapters for the AI request router.

One adapter per upstream AI provider, behind a uniform invoke() contract.
"""

from .base import ProviderAdapter, ProviderReply
from .deepseek import DeepSeekAdapter
from .gemini import GeminiAdapter

__all__ = ["ProviderAdapter", "ProviderReply", "DeepSeekAdapter", "GeminiAdapter"]
