"""
Usage statistics.

Summarizes a caller's current-period consumption from the quota counter and
breaks it down by task type and provider from the routing ledger.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional

from ai_router.storage.repository import QuotaStore, UsageLedger

from .quota import current_period_key
from .tier_policy import DEFAULT_TIER_POLICY, TierPolicy

# Share of a finite limit above which a caller is warned
NEAR_LIMIT_RATIO = 0.8


@dataclass(frozen=True)
class UsageStats:
    """Current-period usage for one caller. limit and remaining are None when unlimited."""
    tier: str
    period_key: str
    requests_used: int
    limit: Optional[int]
    remaining: Optional[int]
    near_limit: bool
    by_task_type: Dict[str, int] = field(default_factory=dict)
    by_provider: Dict[str, int] = field(default_factory=dict)


def get_usage_stats(
    caller_id: str,
    tier: Optional[str],
    quota_store: QuotaStore,
    ledger: UsageLedger,
    period_key: Optional[str] = None,
    policy: TierPolicy = DEFAULT_TIER_POLICY
) -> UsageStats:
    """Compute usage statistics for a caller.

    Args:
        caller_id: Caller identifier
        tier: Subscription tier; unknown tiers are reported as free
        quota_store: Source of the authoritative request counter
        ledger: Source of the per-request breakdown
        period_key: "YYYY-MM" period, defaults to the current UTC month
        policy: Tier policy to resolve limits against

    Returns:
        UsageStats

    Raises:
        StoreUnavailable: If either store cannot be read
    """
    period_key = period_key or current_period_key()
    resolved_tier = policy.resolve_tier(tier)
    limit = policy.get_limits(resolved_tier).request_limit

    usage = quota_store.get_usage(caller_id, period_key)
    requests_used = usage.requests_used if usage else 0

    entries = ledger.fetch_entries(caller_id=caller_id, period_key=period_key, limit=None)
    by_task_type = Counter(entry.task_type for entry in entries)
    by_provider = Counter(entry.provider_used for entry in entries)

    if limit is None:
        remaining = None
        near_limit = False
    else:
        remaining = max(limit - requests_used, 0)
        near_limit = requests_used > limit * NEAR_LIMIT_RATIO

    return UsageStats(
        tier=resolved_tier,
        period_key=period_key,
        requests_used=requests_used,
        limit=limit,
        remaining=remaining,
        near_limit=near_limit,
        by_task_type=dict(by_task_type),
        by_provider=dict(by_provider)
    )
