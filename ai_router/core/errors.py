"""
Error taxonomy for the router.

Every failure the router reports to callers derives from RouterError and
carries the wire-level error code used in JSON responses.
"""

from typing import Optional

# Upstream messages are cut to this length before they reach callers or logs
MAX_UPSTREAM_MESSAGE_LENGTH = 500


class RouterError(Exception):
    """Base class for all routing failures."""
    code = "AI_ROUTER_ERROR"


class ValidationError(RouterError):
    """Raised when a request is malformed (e.g. empty prompt)."""


class QuotaExceeded(RouterError):
    """Raised when the caller has used up the requests allowed this period."""
    code = "USAGE_LIMIT_EXCEEDED"

    def __init__(self, message: str, usage: int, limit: int, tier: str):
        super().__init__(message)
        self.usage = usage
        self.limit = limit
        self.tier = tier


class NoProviderAvailable(RouterError):
    """Raised when no credentialed provider is permitted for the caller's tier."""


class ProviderError(RouterError):
    """Raised when an upstream AI call fails.

    The upstream message is truncated; adapters scrub credentials before
    constructing this error.
    """

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        self.upstream_message = truncate_message(message)
        super().__init__(f"{provider} call failed: {self.upstream_message}")


class StoreUnavailable(RouterError):
    """Raised by storage backends when the quota or ledger store cannot be reached."""


def truncate_message(message: str, limit: int = MAX_UPSTREAM_MESSAGE_LENGTH) -> str:
    """Cut a message to at most `limit` characters, marking the cut."""
    message = message or ""
    if len(message) <= limit:
        return message
    return message[:limit - 3] + "..."
