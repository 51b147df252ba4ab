"""
Caller authentication.

Bearer tokens are resolved to a Caller by an injected resolver. The router
itself trusts the resolved caller id and tier.
"""

from typing import Dict, Optional, Protocol

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ai_router.core.errors import RouterError
from ai_router.core.models import Caller

logger = structlog.get_logger()

security = HTTPBearer(auto_error=False)


class AuthenticationError(RouterError):
    """Raised when a request has no bearer token or an unknown one."""


class CallerResolver(Protocol):
    """Maps a bearer token to the caller it identifies."""

    def resolve(self, token: str) -> Optional[Caller]:
        ...


class StaticCallerResolver:
    """Resolves tokens from a fixed table, e.g. the `callers` config section."""

    def __init__(self, callers: Dict[str, Caller]):
        self._callers = dict(callers)

    def resolve(self, token: str) -> Optional[Caller]:
        return self._callers.get(token)


def get_current_caller(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Caller:
    """Resolve the caller for a request or raise AuthenticationError."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authorization header required")

    resolver: CallerResolver = request.app.state.resolver
    caller = resolver.resolve(credentials.credentials)
    if caller is None:
        logger.warning("unknown_bearer_token")
        raise AuthenticationError("Invalid authentication")

    return caller
