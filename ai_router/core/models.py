"""
Canonical request and result types for routing.

Defines the provider enumeration and the data that flows through the router.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class ProviderId(str, Enum):
    """Upstream AI providers the router can call."""
    DEEPSEEK = "deepseek"
    GEMINI = "gemini"


# Cheap default provider and the one reserved for complex tasks
LOW_COST_PROVIDER = ProviderId.DEEPSEEK
HIGH_CAPABILITY_PROVIDER = ProviderId.GEMINI

DEFAULT_TASK_TYPE = "general"
UNLIMITED_LABEL = "unlimited"


def parse_provider_id(value: Optional[str]) -> Optional[ProviderId]:
    """Map a caller-supplied provider name to a ProviderId.

    Unknown or empty names yield None so the preference is simply ignored.
    """
    if not value:
        return None
    try:
        return ProviderId(value.strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class Caller:
    """Authenticated principal resolved upstream of the router."""
    caller_id: str
    subscription_tier: str


@dataclass(frozen=True)
class RoutingRequest:
    """A single inbound generation request."""
    caller_id: str
    subscription_tier: str
    prompt: str
    task_type: str = DEFAULT_TASK_TYPE
    preferred_provider: Optional[ProviderId] = None


@dataclass(frozen=True)
class UsageSnapshot:
    """Caller usage after a routed request. A limit of None means unlimited."""
    current: int
    limit: Optional[int]
    tier: str

    @property
    def limit_display(self) -> Union[int, str]:
        return UNLIMITED_LABEL if self.limit is None else self.limit


@dataclass(frozen=True)
class RoutingResult:
    """Successful outcome of Router.route."""
    content: str
    provider_used: ProviderId
    task_type: str
    usage: UsageSnapshot
    timestamp: datetime
