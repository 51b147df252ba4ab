"""
Provider adapter registry.

The lookup table from ProviderId to adapter class is closed over the enum:
adding a provider id without an adapter fails at import time.
"""

from typing import Dict, Type

import structlog

from ai_router.config.loader import RouterConfig
from ai_router.core.models import ProviderId

from .base import ProviderAdapter
from .deepseek import DeepSeekAdapter
from .gemini import GeminiAdapter

logger = structlog.get_logger()

ADAPTER_CLASSES: Dict[ProviderId, Type[ProviderAdapter]] = {
    ProviderId.DEEPSEEK: DeepSeekAdapter,
    ProviderId.GEMINI: GeminiAdapter,
}

_missing = set(ProviderId) - set(ADAPTER_CLASSES)
if _missing:
    raise RuntimeError(f"No adapter registered for providers: {sorted(p.value for p in _missing)}")


def build_adapters(config: RouterConfig) -> Dict[ProviderId, ProviderAdapter]:
    """Instantiate one adapter per provider that has a credential configured.

    Providers without a credential are left out, so the router never
    selects them.
    """
    adapters: Dict[ProviderId, ProviderAdapter] = {}
    for provider_id, adapter_class in ADAPTER_CLASSES.items():
        api_key = config.credential_for(provider_id)
        if api_key:
            adapters[provider_id] = adapter_class(api_key)
        else:
            logger.warning("provider_not_configured", provider=provider_id.value)
    return adapters
