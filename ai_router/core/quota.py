"""
Monthly quota enforcement.

Checks a caller's current-period usage against their tier limit before any
provider is called, and records usage once a provider has been attempted.

The check and the later increment are separate store calls, so two
concurrent requests can both pass a check at limit - 1. The quota is a soft
cap; the increment itself is atomic at the store layer.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from ai_router.storage.repository import QuotaStore

from .errors import StoreUnavailable
from .tier_policy import DEFAULT_TIER_POLICY, FREE_TIER, TierPolicy

logger = structlog.get_logger()

STORE_UNAVAILABLE_REASON = "Unable to verify subscription status"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def current_period_key(now: Optional[datetime] = None) -> str:
    """Return the "YYYY-MM" calendar-month key for `now` in UTC."""
    now = now or utc_now()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m")


@dataclass(frozen=True)
class QuotaCheck:
    """Outcome of a quota check. limit of None means unlimited."""
    allowed: bool
    current_usage: int
    limit: Optional[int]
    tier: str
    reason: Optional[str] = None


class QuotaGuard:
    """Accepts or rejects requests against the caller's monthly limit."""

    def __init__(
        self,
        store: QuotaStore,
        policy: TierPolicy = DEFAULT_TIER_POLICY,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.policy = policy
        self._clock = clock

    def check(
        self,
        caller_id: str,
        subscription_tier: Optional[str],
        period_key: Optional[str] = None
    ) -> QuotaCheck:
        """Check whether the caller may make another request this period.

        Does not increment usage. A store failure fails closed with the
        free-tier limit rather than raising.

        Args:
            caller_id: Caller identifier
            subscription_tier: Caller's tier; unknown tiers are treated as free
            period_key: "YYYY-MM" period, defaults to the current UTC month

        Returns:
            QuotaCheck describing the decision
        """
        period_key = period_key or current_period_key(self._clock())
        tier = self.policy.resolve_tier(subscription_tier)
        limits = self.policy.get_limits(tier)

        try:
            usage = self.store.get_usage(caller_id, period_key)
        except StoreUnavailable as e:
            logger.error("quota_check_store_unavailable", caller_id=caller_id, error=str(e))
            return QuotaCheck(
                allowed=False,
                current_usage=0,
                limit=self.policy.free_limits.request_limit,
                tier=FREE_TIER,
                reason=STORE_UNAVAILABLE_REASON
            )

        current_usage = usage.requests_used if usage else 0

        if limits.allows(current_usage):
            return QuotaCheck(
                allowed=True,
                current_usage=current_usage,
                limit=limits.request_limit,
                tier=tier
            )

        return QuotaCheck(
            allowed=False,
            current_usage=current_usage,
            limit=limits.request_limit,
            tier=tier,
            reason=(
                f"Monthly limit of {limits.request_limit} requests exceeded. "
                f"Current usage: {current_usage}. "
                f"Upgrade your subscription to continue."
            )
        )

    def record_usage(
        self,
        caller_id: str,
        period_key: Optional[str] = None,
        at: Optional[datetime] = None
    ) -> int:
        """Add one request to the caller's usage for the period.

        Returns:
            The new requests_used value

        Raises:
            StoreUnavailable: If the store cannot be written
        """
        at = at or self._clock()
        period_key = period_key or current_period_key(at)
        return self.store.increment(caller_id, period_key, at)
