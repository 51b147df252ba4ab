"""
Tests for the HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

import ai_router
from ai_router.api.app import create_app
from ai_router.api.auth import StaticCallerResolver
from ai_router.core.models import Caller, ProviderId

from conftest import FakeAdapter

PERIOD = "2024-03"

CALLERS = {
    "free-token": Caller("user-free", "free"),
    "pro-token": Caller("user-pro", "pro"),
    "ent-token": Caller("user-ent", "enterprise"),
}


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(router):
    app = create_app(router, StaticCallerResolver(CALLERS))
    return TestClient(app)


class TestAuthentication:
    """Requests must carry a known bearer token."""

    def test_missing_token(self, client):
        response = client.post("/api/v1/route", json={"prompt": "Hello"})
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": {"code": "AI_ROUTER_ERROR", "message": "Authorization header required"},
        }

    def test_unknown_token(self, client, quota_store):
        response = client.post("/api/v1/route", json={"prompt": "Hello"}, headers=_auth("nope"))
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid authentication"
        assert quota_store.reads == 0


class TestRouteEndpoint:
    """POST /api/v1/route"""

    def test_success(self, client):
        response = client.post(
            "/api/v1/route",
            json={"prompt": "Draft an NDA", "taskType": "legal_analysis"},
            headers=_auth("pro-token")
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["response"] == "gemini: Draft an NDA"
        assert body["provider"] == "gemini"
        assert body["taskType"] == "legal_analysis"
        assert body["usage"] == {"current": 1, "limit": 1000, "subscription_tier": "pro"}
        assert body["timestamp"].startswith("2024-03-15T12:00:00")

    def test_default_task_type(self, client):
        response = client.post("/api/v1/route", json={"prompt": "Hi"}, headers=_auth("free-token"))
        assert response.json()["taskType"] == "general"

    def test_preferred_provider(self, client):
        response = client.post(
            "/api/v1/route",
            json={"prompt": "Hi", "preferredProvider": "gemini"},
            headers=_auth("pro-token")
        )
        assert response.json()["provider"] == "gemini"

    def test_unknown_preferred_provider_ignored(self, client):
        response = client.post(
            "/api/v1/route",
            json={"prompt": "Hi", "preferredProvider": "claude"},
            headers=_auth("pro-token")
        )
        assert response.status_code == 200
        assert response.json()["provider"] == "deepseek"

    def test_unlimited_label(self, client):
        response = client.post("/api/v1/route", json={"prompt": "Hi"}, headers=_auth("ent-token"))
        assert response.json()["usage"]["limit"] == "unlimited"

    def test_quota_exceeded(self, client, quota_store):
        quota_store.set_usage("user-free", PERIOD, 10)

        response = client.post("/api/v1/route", json={"prompt": "Hi"}, headers=_auth("free-token"))

        assert response.status_code == 429
        assert response.json() == {
            "success": False,
            "error": {
                "code": "USAGE_LIMIT_EXCEEDED",
                "message": (
                    "Monthly limit of 10 requests exceeded. Current usage: 10. "
                    "Upgrade your subscription to continue."
                ),
                "usage": 10,
                "limit": 10,
                "subscription_tier": "free",
            },
        }

    @pytest.mark.parametrize("payload", [{"prompt": ""}, {"prompt": "   "}, {"taskType": "general"}])
    def test_missing_prompt(self, client, quota_store, payload):
        response = client.post("/api/v1/route", json=payload, headers=_auth("free-token"))
        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": {"code": "AI_ROUTER_ERROR", "message": "Prompt is required"},
        }
        assert quota_store.reads == 0

    def test_provider_error(self, client, router):
        router.adapters[ProviderId.DEEPSEEK] = FakeAdapter(ProviderId.DEEPSEEK, fail_with="upstream timeout")

        response = client.post("/api/v1/route", json={"prompt": "Hi"}, headers=_auth("free-token"))

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "AI_ROUTER_ERROR"
        assert "deepseek" in error["message"]
        assert "upstream timeout" in error["message"]

    def test_malformed_body(self, client):
        response = client.post(
            "/api/v1/route",
            content="not json",
            headers={**_auth("free-token"), "Content-Type": "application/json"}
        )
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "AI_ROUTER_ERROR"

    def test_cors_preflight(self, client):
        response = client.options(
            "/api/v1/route",
            headers={
                "Origin": "https://app.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            }
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestUsageEndpoint:
    """GET /api/v1/usage"""

    def test_usage_after_requests(self, client, router):
        for _ in range(3):
            client.post("/api/v1/route", json={"prompt": "Hi"}, headers=_auth("free-token"))
        router.dispatcher.flush()

        response = client.get(
            "/api/v1/usage",
            headers=_auth("free-token"),
            params={"period": PERIOD}
        )

        assert response.status_code == 200
        usage = response.json()["usage"]
        assert usage["subscription_tier"] == "free"
        assert usage["requests_used"] == 3
        assert usage["limit"] == 10
        assert usage["requests_remaining"] == 7
        assert usage["near_limit"] is False
        assert usage["by_provider"] == {"deepseek": 3}

    def test_usage_requires_auth(self, client):
        assert client.get("/api/v1/usage").status_code == 401


class TestHealthEndpoint:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["providers"] == ["deepseek", "gemini"]
        assert body["version"] == ai_router.__version__
