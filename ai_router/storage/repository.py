"""
Repository pattern for data access.

Handles the quota counter table and the append-only routing ledger. Any
sqlite3 failure is surfaced as StoreUnavailable so callers never see raw
driver exceptions.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional, Protocol

from ai_router.core.errors import StoreUnavailable

from .db import DEFAULT_DB_PATH, get_connection
from .models import RoutingLogEntry, UsagePeriod


class QuotaStore(Protocol):
    """Durable per-caller, per-period request counter."""

    def get_usage(self, caller_id: str, period_key: str) -> Optional[UsagePeriod]:
        ...

    def increment(self, caller_id: str, period_key: str, at: datetime) -> int:
        ...


class UsageLedger(Protocol):
    """Append-only record of routed requests."""

    def append(self, entry: RoutingLogEntry) -> None:
        ...

    def fetch_entries(
        self,
        caller_id: Optional[str] = None,
        period_key: Optional[str] = None,
        limit: Optional[int] = 100
    ) -> List[RoutingLogEntry]:
        ...


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the usage_quotas and ai_routing_logs tables if they don't exist.

    ai_routing_logs is an append-only ledger. No UPDATE or DELETE operations
    should ever be performed on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_quotas (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                caller_id TEXT NOT NULL,
                period_key TEXT NOT NULL,
                requests_used INTEGER NOT NULL DEFAULT 0,
                last_request_at TEXT,
                UNIQUE (caller_id, period_key)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_routing_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                caller_id TEXT NOT NULL,
                period_key TEXT NOT NULL,
                task_type TEXT NOT NULL,
                provider_used TEXT NOT NULL,
                requested_at TEXT NOT NULL,
                outcome TEXT NOT NULL,
                latency_ms INTEGER NOT NULL DEFAULT 0
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_ai_routing_logs_caller_period
            ON ai_routing_logs (caller_id, period_key)
        """)
        conn.commit()
    finally:
        conn.close()


class SqliteQuotaStore:
    """Quota counters backed by the usage_quotas table."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get_usage(self, caller_id: str, period_key: str) -> Optional[UsagePeriod]:
        """Read the usage row for a caller and period.

        Returns:
            The UsagePeriod, or None if the caller has no requests this period

        Raises:
            StoreUnavailable: If the database cannot be read
        """
        try:
            conn = get_connection(self.db_path)
            try:
                cursor = conn.execute("""
                    SELECT caller_id, period_key, requests_used, last_request_at
                    FROM usage_quotas
                    WHERE caller_id = ? AND period_key = ?
                    LIMIT 1
                """, (caller_id, period_key))
                row = cursor.fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Failed to read usage quota: {e}") from e

        if row is None:
            return None
        return UsagePeriod(
            caller_id=row[0],
            period_key=row[1],
            requests_used=row[2] or 0,
            last_request_at=datetime.fromisoformat(row[3]) if row[3] else None
        )

    def increment(self, caller_id: str, period_key: str, at: datetime) -> int:
        """Add one request to the caller's period, creating the row if needed.

        The upsert is a single statement, so concurrent increments for the
        same caller are never lost.

        Returns:
            The new requests_used value

        Raises:
            StoreUnavailable: If the database cannot be written
        """
        try:
            conn = get_connection(self.db_path)
            try:
                conn.execute("""
                    INSERT INTO usage_quotas (caller_id, period_key, requests_used, last_request_at)
                    VALUES (?, ?, 1, ?)
                    ON CONFLICT (caller_id, period_key) DO UPDATE SET
                        requests_used = requests_used + 1,
                        last_request_at = excluded.last_request_at
                """, (caller_id, period_key, at.isoformat()))
                cursor = conn.execute("""
                    SELECT requests_used FROM usage_quotas
                    WHERE caller_id = ? AND period_key = ?
                """, (caller_id, period_key))
                requests_used = cursor.fetchone()[0]
                conn.commit()
                return requests_used
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Failed to record usage: {e}") from e


class SqliteUsageLedger:
    """Append-only routing ledger backed by the ai_routing_logs table."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def append(self, entry: RoutingLogEntry) -> None:
        """Insert a single routing log entry.

        Raises:
            StoreUnavailable: If the database cannot be written
        """
        try:
            conn = get_connection(self.db_path)
            try:
                conn.execute("""
                    INSERT INTO ai_routing_logs
                    (caller_id, period_key, task_type, provider_used,
                     requested_at, outcome, latency_ms)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    entry.caller_id,
                    entry.period_key,
                    entry.task_type,
                    entry.provider_used,
                    entry.requested_at.isoformat(),
                    entry.outcome,
                    entry.latency_ms
                ))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Failed to append routing log: {e}") from e

    def fetch_entries(
        self,
        caller_id: Optional[str] = None,
        period_key: Optional[str] = None,
        limit: Optional[int] = 100
    ) -> List[RoutingLogEntry]:
        """Fetch routing log entries, newest first.

        Args:
            caller_id: Optional filter for a specific caller
            period_key: Optional filter for a "YYYY-MM" period
            limit: Maximum number of entries to return, None for all

        Returns:
            List of entries in reverse insertion order
        """
        query = """
            SELECT caller_id, task_type, provider_used, requested_at,
                   outcome, latency_ms
            FROM ai_routing_logs
        """
        params = []
        conditions = []

        if caller_id:
            conditions.append("caller_id = ?")
            params.append(caller_id)
        if period_key:
            conditions.append("period_key = ?")
            params.append(period_key)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            conn = get_connection(self.db_path)
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Failed to read routing logs: {e}") from e

        return [
            RoutingLogEntry(
                caller_id=row[0],
                task_type=row[1],
                provider_used=row[2],
                requested_at=datetime.fromisoformat(row[3]),
                outcome=row[4],
                latency_ms=row[5]
            )
            for row in rows
        ]
