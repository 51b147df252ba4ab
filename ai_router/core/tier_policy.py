"""
Subscription tier policy.

Maps a subscription tier to its monthly request limit and the set of
providers the tier may use.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from .models import HIGH_CAPABILITY_PROVIDER, LOW_COST_PROVIDER, ProviderId

FREE_TIER = "free"
PRO_TIER = "pro"
ENTERPRISE_TIER = "enterprise"


@dataclass(frozen=True)
class TierLimits:
    """Limits for one subscription tier. request_limit of None means unlimited."""
    request_limit: Optional[int]
    allowed_providers: FrozenSet[ProviderId]

    def __post_init__(self):
        """Validate the tier can always route somewhere."""
        if not self.allowed_providers:
            raise ValueError("allowed_providers cannot be empty")
        if self.request_limit is not None and self.request_limit < 0:
            raise ValueError("request_limit cannot be negative")

    @property
    def is_unlimited(self) -> bool:
        return self.request_limit is None

    def allows(self, current_usage: int) -> bool:
        """Whether a caller with `current_usage` requests may make another."""
        return self.is_unlimited or current_usage < self.request_limit


@dataclass(frozen=True)
class TierPolicy:
    """Fixed table of tier limits with free-tier fallback."""
    tiers: Dict[str, TierLimits]

    def __post_init__(self):
        if FREE_TIER not in self.tiers:
            raise ValueError(f"Tier policy must define the '{FREE_TIER}' tier")

    def resolve_tier(self, tier: Optional[str]) -> str:
        """Normalize a tier name; unknown or missing tiers resolve to free."""
        normalized = (tier or "").strip().lower()
        return normalized if normalized in self.tiers else FREE_TIER

    def get_limits(self, tier: Optional[str]) -> TierLimits:
        """Get limits for a tier. Never raises for unknown tiers.

        Args:
            tier: Subscription tier name, any case

        Returns:
            TierLimits for the tier, or the free tier's limits if unknown
        """
        return self.tiers[self.resolve_tier(tier)]

    @property
    def free_limits(self) -> TierLimits:
        return self.tiers[FREE_TIER]


DEFAULT_TIER_POLICY = TierPolicy({
    FREE_TIER: TierLimits(
        request_limit=10,
        allowed_providers=frozenset({LOW_COST_PROVIDER})
    ),
    PRO_TIER: TierLimits(
        request_limit=1000,
        allowed_providers=frozenset({LOW_COST_PROVIDER, HIGH_CAPABILITY_PROVIDER})
    ),
    ENTERPRISE_TIER: TierLimits(
        request_limit=None,
        allowed_providers=frozenset({LOW_COST_PROVIDER, HIGH_CAPABILITY_PROVIDER})
    ),
})


def get_tier_limits(tier: Optional[str], policy: TierPolicy = DEFAULT_TIER_POLICY) -> TierLimits:
    """Look up the limits for a subscription tier."""
    return policy.get_limits(tier)
