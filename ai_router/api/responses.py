"""
JSON response envelopes.

Every response carries a `success` flag; failures carry an `error` object
with a machine-readable code.
"""

from typing import Any, Dict

from ai_router.core.errors import QuotaExceeded, RouterError
from ai_router.core.models import UNLIMITED_LABEL, RoutingResult
from ai_router.core.usage_stats import UsageStats


def success_body(result: RoutingResult) -> Dict[str, Any]:
    return {
        "success": True,
        "response": result.content,
        "provider": result.provider_used.value,
        "taskType": result.task_type,
        "usage": {
            "current": result.usage.current,
            "limit": result.usage.limit_display,
            "subscription_tier": result.usage.tier,
        },
        "timestamp": result.timestamp.isoformat(),
    }


def quota_exceeded_body(error: QuotaExceeded) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {
            "code": error.code,
            "message": str(error),
            "usage": error.usage,
            "limit": UNLIMITED_LABEL if error.limit is None else error.limit,
            "subscription_tier": error.tier,
        },
    }


def error_body(message: str, code: str = RouterError.code) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
        },
    }


def usage_body(stats: UsageStats) -> Dict[str, Any]:
    return {
        "success": True,
        "usage": {
            "subscription_tier": stats.tier,
            "period": stats.period_key,
            "requests_used": stats.requests_used,
            "limit": UNLIMITED_LABEL if stats.limit is None else stats.limit,
            "requests_remaining": UNLIMITED_LABEL if stats.remaining is None else stats.remaining,
            "near_limit": stats.near_limit,
            "by_task_type": stats.by_task_type,
            "by_provider": stats.by_provider,
        },
    }
