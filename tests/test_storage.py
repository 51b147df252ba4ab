"""
Unit tests for storage layer.

Tests schema creation, quota counters and the routing ledger over SQLite.
"""

import os
import tempfile
import threading
from datetime import datetime, timezone

import pytest

from ai_router.core.errors import StoreUnavailable
from ai_router.storage.db import get_connection
from ai_router.storage.models import OUTCOME_SUCCESS, RoutingLogEntry
from ai_router.storage.repository import (
    SqliteQuotaStore,
    SqliteUsageLedger,
    initialize_schema,
)

AT = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify both tables are created with the expected columns."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("PRAGMA table_info(usage_quotas)")
                assert [col[1] for col in cursor.fetchall()] == [
                    'id', 'caller_id', 'period_key', 'requests_used', 'last_request_at'
                ]

                cursor = conn.execute("PRAGMA table_info(ai_routing_logs)")
                assert [col[1] for col in cursor.fetchall()] == [
                    'id', 'caller_id', 'period_key', 'task_type', 'provider_used',
                    'requested_at', 'outcome', 'latency_ms'
                ]
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)


class TestSqliteQuotaStore:
    """Test quota counters."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.store = SqliteQuotaStore(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_row(self):
        assert self.store.get_usage("user-1", "2024-03") is None

    def test_increment_creates_row(self):
        assert self.store.increment("user-1", "2024-03", AT) == 1

        usage = self.store.get_usage("user-1", "2024-03")
        assert usage.caller_id == "user-1"
        assert usage.period_key == "2024-03"
        assert usage.requests_used == 1
        assert usage.last_request_at == AT

    def test_increment_accumulates(self):
        for _ in range(5):
            self.store.increment("user-1", "2024-03", AT)
        assert self.store.get_usage("user-1", "2024-03").requests_used == 5

    def test_periods_are_separate(self):
        self.store.increment("user-1", "2024-02", AT)
        self.store.increment("user-1", "2024-03", AT)
        self.store.increment("user-1", "2024-03", AT)
        assert self.store.get_usage("user-1", "2024-02").requests_used == 1
        assert self.store.get_usage("user-1", "2024-03").requests_used == 2

    def test_one_row_per_caller_and_period(self):
        for _ in range(3):
            self.store.increment("user-1", "2024-03", AT)

        conn = get_connection(self.db_path)
        try:
            count = conn.execute("SELECT COUNT(*) FROM usage_quotas").fetchone()[0]
        finally:
            conn.close()
        assert count == 1

    def test_concurrent_increments_not_lost(self):
        def worker():
            for _ in range(25):
                self.store.increment("user-1", "2024-03", AT)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert self.store.get_usage("user-1", "2024-03").requests_used == 100

    def test_missing_table_raises_store_unavailable(self):
        store = SqliteQuotaStore(os.path.join(self.temp_dir, "empty.db"))
        with pytest.raises(StoreUnavailable, match="Failed to read usage quota"):
            store.get_usage("user-1", "2024-03")
        with pytest.raises(StoreUnavailable, match="Failed to record usage"):
            store.increment("user-1", "2024-03", AT)


class TestSqliteUsageLedger:
    """Test the append-only routing ledger."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.ledger = SqliteUsageLedger(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _entry(self, caller_id="user-1", task_type="general", provider="deepseek", at=AT):
        return RoutingLogEntry(
            caller_id=caller_id,
            task_type=task_type,
            provider_used=provider,
            requested_at=at,
            outcome=OUTCOME_SUCCESS,
            latency_ms=120
        )

    def test_append_and_fetch(self):
        entry = self._entry()
        self.ledger.append(entry)

        fetched = self.ledger.fetch_entries()
        assert fetched == [entry]

    def test_newest_first(self):
        self.ledger.append(self._entry(task_type="first"))
        self.ledger.append(self._entry(task_type="second"))

        fetched = self.ledger.fetch_entries()
        assert [e.task_type for e in fetched] == ["second", "first"]

    def test_filters(self):
        self.ledger.append(self._entry(caller_id="user-1"))
        self.ledger.append(self._entry(caller_id="user-2"))
        self.ledger.append(self._entry(caller_id="user-1", at=datetime(2024, 2, 1, tzinfo=timezone.utc)))

        assert len(self.ledger.fetch_entries(caller_id="user-1")) == 2
        assert len(self.ledger.fetch_entries(caller_id="user-1", period_key="2024-03")) == 1
        assert len(self.ledger.fetch_entries(period_key="2024-02")) == 1

    def test_limit(self):
        for _ in range(5):
            self.ledger.append(self._entry())

        assert len(self.ledger.fetch_entries(limit=3)) == 3
        assert len(self.ledger.fetch_entries(limit=None)) == 5

    def test_missing_table_raises_store_unavailable(self):
        ledger = SqliteUsageLedger(os.path.join(self.temp_dir, "empty.db"))
        with pytest.raises(StoreUnavailable, match="Failed to append routing log"):
            ledger.append(self._entry())
        with pytest.raises(StoreUnavailable, match="Failed to read routing logs"):
            ledger.fetch_entries()
