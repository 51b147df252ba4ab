"""
Data models for storage layer.

Defines quota rows and routing log entries.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

OUTCOME_SUCCESS = "success"
OUTCOME_PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class UsagePeriod:
    """Requests consumed by one caller in one calendar month.

    At most one row exists per (caller_id, period_key).
    """
    caller_id: str
    period_key: str  # "YYYY-MM", UTC
    requests_used: int
    last_request_at: Optional[datetime] = None


@dataclass(frozen=True)
class RoutingLogEntry:
    """Immutable record of one routed request.

    Append-only audit events; once written they are never modified.
    """
    caller_id: str
    task_type: str
    provider_used: str
    requested_at: datetime
    outcome: str
    latency_ms: int = 0

    @property
    def period_key(self) -> str:
        return self.requested_at.strftime("%Y-%m")
