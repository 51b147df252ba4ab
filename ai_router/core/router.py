"""
Request routing.

Orchestrates one request end to end: validate, check quota, pick a provider
the caller's tier permits, call it, then charge the caller and record the
request in the routing ledger.

Usage is charged once a provider has been attempted, whether or not the
call succeeded.
"""

import time
from typing import AbstractSet, Callable, Dict, Optional

import structlog

from ai_router.config.loader import RouterConfig
from ai_router.providers.base import ProviderAdapter
from ai_router.providers.registry import build_adapters
from ai_router.storage.models import OUTCOME_PROVIDER_ERROR, OUTCOME_SUCCESS, RoutingLogEntry
from ai_router.storage.repository import (
    SqliteQuotaStore,
    SqliteUsageLedger,
    UsageLedger,
    initialize_schema,
)

from .background import BackgroundDispatcher
from .errors import QuotaExceeded, StoreUnavailable, ValidationError
from .models import ProviderId, RoutingRequest, RoutingResult, UsageSnapshot
from .quota import QuotaGuard, current_period_key, utc_now
from .selector import COMPLEX_TASK_TYPES, select_provider

logger = structlog.get_logger()


class Router:
    """Routes requests to AI providers under tier and quota policy."""

    def __init__(
        self,
        quota_guard: QuotaGuard,
        adapters: Dict[ProviderId, ProviderAdapter],
        ledger: UsageLedger,
        dispatcher: Optional[BackgroundDispatcher] = None,
        complex_tasks: AbstractSet[str] = COMPLEX_TASK_TYPES,
        clock: Callable = utc_now
    ):
        """Initialize the router.

        Args:
            quota_guard: Quota checks and usage recording
            adapters: Configured adapters keyed by provider id
            ledger: Routing ledger
            dispatcher: Runs ledger appends off the response path
            complex_tasks: Task types routed to the high-capability provider
            clock: Returns the current UTC time
        """
        self.quota_guard = quota_guard
        self.adapters = dict(adapters)
        self.ledger = ledger
        self.dispatcher = dispatcher or BackgroundDispatcher()
        self.complex_tasks = frozenset(complex_tasks)
        self._clock = clock

    @classmethod
    def from_config(cls, config: RouterConfig) -> "Router":
        """Build a router over SQLite stores and the credentialed adapters.

        Args:
            config: Process configuration

        Returns:
            Router ready to serve requests
        """
        initialize_schema(config.db_path)
        quota_guard = QuotaGuard(
            SqliteQuotaStore(config.db_path),
            policy=config.routing.tier_policy
        )
        return cls(
            quota_guard=quota_guard,
            adapters=build_adapters(config),
            ledger=SqliteUsageLedger(config.db_path),
            complex_tasks=config.routing.complex_tasks
        )

    def route(self, request: RoutingRequest) -> RoutingResult:
        """Route a single request.

        Args:
            request: The inbound request

        Returns:
            RoutingResult with the provider's content and updated usage

        Raises:
            ValidationError: If the prompt is blank
            QuotaExceeded: If the caller has no requests left this period
            NoProviderAvailable: If no configured provider is permitted
            ProviderError: If the provider call fails
        """
        if not request.prompt or not request.prompt.strip():
            raise ValidationError("Prompt is required")

        started_at = self._clock()
        period_key = current_period_key(started_at)

        logger.info(
            "route_started",
            caller_id=request.caller_id,
            task_type=request.task_type,
            prompt_length=len(request.prompt)
        )

        check = self.quota_guard.check(request.caller_id, request.subscription_tier, period_key)
        if not check.allowed:
            logger.warning(
                "quota_denied",
                caller_id=request.caller_id,
                tier=check.tier,
                usage=check.current_usage,
                limit=check.limit
            )
            raise QuotaExceeded(check.reason, check.current_usage, check.limit, check.tier)

        limits = self.quota_guard.policy.get_limits(check.tier)
        allowed = frozenset(p for p in limits.allowed_providers if p in self.adapters)

        provider_id = select_provider(
            allowed,
            request.preferred_provider,
            request.task_type,
            check.tier,
            self.complex_tasks
        )

        outcome = OUTCOME_PROVIDER_ERROR
        start = time.monotonic()
        try:
            reply = self.adapters[provider_id].invoke(request.prompt, request.task_type)
            outcome = OUTCOME_SUCCESS
        except Exception as e:
            logger.error(
                "provider_call_failed",
                caller_id=request.caller_id,
                provider=provider_id.value,
                error=str(e)
            )
            raise
        finally:
            latency_ms = int((time.monotonic() - start) * 1000)
            self._record(request, provider_id, period_key, started_at, outcome, latency_ms)

        logger.info(
            "route_completed",
            caller_id=request.caller_id,
            provider=provider_id.value,
            latency_ms=latency_ms,
            response_length=len(reply.content)
        )

        return RoutingResult(
            content=reply.content,
            provider_used=provider_id,
            task_type=request.task_type,
            usage=UsageSnapshot(
                current=check.current_usage + 1,
                limit=check.limit,
                tier=check.tier
            ),
            timestamp=self._clock()
        )

    def close(self) -> None:
        """Wait for pending ledger writes and stop the dispatcher."""
        self.dispatcher.flush()
        self.dispatcher.shutdown()

    def _record(
        self,
        request: RoutingRequest,
        provider_id: ProviderId,
        period_key: str,
        requested_at,
        outcome: str,
        latency_ms: int
    ) -> None:
        try:
            self.quota_guard.record_usage(request.caller_id, period_key, requested_at)
        except StoreUnavailable as e:
            logger.warning("usage_record_failed", caller_id=request.caller_id, error=str(e))
        except Exception:
            logger.exception("usage_record_failed", caller_id=request.caller_id)

        entry = RoutingLogEntry(
            caller_id=request.caller_id,
            task_type=request.task_type,
            provider_used=provider_id.value,
            requested_at=requested_at,
            outcome=outcome,
            latency_ms=latency_ms
        )
        try:
            self.dispatcher.submit("ledger_append", self._append_entry, entry)
        except RuntimeError:
            # Dispatcher already shut down
            logger.exception("ledger_append_failed", caller_id=request.caller_id)

    def _append_entry(self, entry: RoutingLogEntry) -> None:
        try:
            self.ledger.append(entry)
        except StoreUnavailable as e:
            logger.warning("ledger_append_failed", caller_id=entry.caller_id, error=str(e))
