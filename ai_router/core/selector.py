"""
Provider selection.

Picks exactly one provider per request from the providers the caller's tier
permits. Selection is pure and deterministic: no I/O, no randomness.

Selection Order:
1. Caller preference, when permitted
2. Free tier always gets the low-cost provider
3. Complex tasks go to the high-capability provider when permitted
4. Anything not permitted falls back to the first permitted id
"""

from typing import AbstractSet, Optional

from .errors import NoProviderAvailable
from .models import HIGH_CAPABILITY_PROVIDER, LOW_COST_PROVIDER, ProviderId
from .tier_policy import FREE_TIER

COMPLEX_TASK_TYPES = frozenset({
    "document_generation",
    "template_generation",
    "legal_analysis",
    "growth_analysis",
})


def select_provider(
    allowed_providers: AbstractSet[ProviderId],
    preferred_provider: Optional[ProviderId],
    task_type: str,
    tier: str,
    complex_tasks: AbstractSet[str] = COMPLEX_TASK_TYPES,
) -> ProviderId:
    """Select the provider for a request.

    Args:
        allowed_providers: Providers permitted for the tier and configured
        preferred_provider: Optional caller preference
        task_type: Caller-supplied task label
        tier: Normalized subscription tier
        complex_tasks: Task types that warrant the high-capability provider

    Returns:
        The selected ProviderId

    Raises:
        NoProviderAvailable: If allowed_providers is empty
    """
    if not allowed_providers:
        raise NoProviderAvailable("No AI providers available")

    if preferred_provider is not None and preferred_provider in allowed_providers:
        return preferred_provider

    if tier == FREE_TIER:
        selected = LOW_COST_PROVIDER
    elif task_type in complex_tasks and HIGH_CAPABILITY_PROVIDER in allowed_providers:
        selected = HIGH_CAPABILITY_PROVIDER
    else:
        selected = LOW_COST_PROVIDER

    # Misconfiguration: keep routing rather than fail
    if selected not in allowed_providers:
        selected = min(allowed_providers, key=lambda p: p.value)

    return selected
