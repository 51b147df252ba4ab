"""
Shared test doubles for router tests.

In-memory stores that count their calls, and a scripted provider adapter.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pytest
import structlog

from ai_router.core.background import BackgroundDispatcher
from ai_router.core.errors import StoreUnavailable
from ai_router.core.models import ProviderId
from ai_router.core.quota import QuotaGuard
from ai_router.core.router import Router
from ai_router.providers.base import ProviderAdapter, ProviderReply
from ai_router.storage.models import RoutingLogEntry, UsagePeriod

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryQuotaStore:
    """QuotaStore over a dict, counting reads and increments."""

    def __init__(self):
        self.rows: Dict[Tuple[str, str], UsagePeriod] = {}
        self.reads = 0
        self.increments = 0
        self._lock = threading.Lock()

    def set_usage(self, caller_id: str, period_key: str, requests_used: int) -> None:
        self.rows[(caller_id, period_key)] = UsagePeriod(caller_id, period_key, requests_used)

    def get_usage(self, caller_id: str, period_key: str) -> Optional[UsagePeriod]:
        self.reads += 1
        return self.rows.get((caller_id, period_key))

    def increment(self, caller_id: str, period_key: str, at: datetime) -> int:
        with self._lock:
            self.increments += 1
            current = self.rows.get((caller_id, period_key))
            used = (current.requests_used if current else 0) + 1
            self.rows[(caller_id, period_key)] = UsagePeriod(caller_id, period_key, used, at)
            return used


class FailingQuotaStore:
    """QuotaStore whose every call fails."""

    def get_usage(self, caller_id: str, period_key: str) -> Optional[UsagePeriod]:
        raise StoreUnavailable("database is locked")

    def increment(self, caller_id: str, period_key: str, at: datetime) -> int:
        raise StoreUnavailable("database is locked")


class InMemoryLedger:
    """UsageLedger over a list."""

    def __init__(self, fail: bool = False):
        self.entries: List[RoutingLogEntry] = []
        self.fail = fail
        self._lock = threading.Lock()

    def append(self, entry: RoutingLogEntry) -> None:
        if self.fail:
            raise StoreUnavailable("ledger offline")
        with self._lock:
            self.entries.append(entry)

    def fetch_entries(self, caller_id=None, period_key=None, limit=100) -> List[RoutingLogEntry]:
        matches = [
            e for e in reversed(self.entries)
            if (caller_id is None or e.caller_id == caller_id)
            and (period_key is None or e.period_key == period_key)
        ]
        return matches if limit is None else matches[:limit]


class FakeAdapter(ProviderAdapter):
    """Adapter that echoes its input or fails on demand."""

    display_name = "Fake"

    def __init__(self, provider_id: ProviderId, fail_with: Optional[str] = None):
        self.provider_id = provider_id
        super().__init__("fake-key")
        self.fail_with = fail_with
        self.calls: List[Tuple[str, str]] = []

    def invoke(self, prompt: str, task_type: str) -> ProviderReply:
        self.calls.append((prompt, task_type))
        if self.fail_with is not None:
            raise self._error(self.fail_with, status_code=502)
        return ProviderReply(content=f"{self.provider_id.value}: {prompt}")


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration made by CLI invocations."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def quota_store():
    return InMemoryQuotaStore()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def adapters():
    return {
        ProviderId.DEEPSEEK: FakeAdapter(ProviderId.DEEPSEEK),
        ProviderId.GEMINI: FakeAdapter(ProviderId.GEMINI),
    }


@pytest.fixture
def router(quota_store, ledger, adapters):
    router = Router(
        quota_guard=QuotaGuard(quota_store, clock=lambda: FIXED_NOW),
        adapters=adapters,
        ledger=ledger,
        dispatcher=BackgroundDispatcher(),
        clock=lambda: FIXED_NOW
    )
    yield router
    router.close()

