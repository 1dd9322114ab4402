"""Test API endpoints."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from draftwise.api.app import create_app
from draftwise.core.errors import AppError, ErrorCode
from draftwise.core.rate_limit import RateLimiter
from draftwise.llm.generate import GenerationResult

EMAIL_GENERATE = "draftwise.services.email.generate_text"
PROBE = "draftwise.services.email.probe_gemini_key"
SLIDES_GENERATE = "draftwise.services.slides.generate_text"


@pytest.fixture
def app():
    return create_app(mount_ui=False)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


def _auth(key):
    return {"Authorization": f"Bearer {key}"}


def test_health_endpoint(client):
    """Test /health endpoint returns 200."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "draftwise"}


def test_health_has_request_id_and_security_headers(client):
    """Test that responses include X-Request-ID and hardening headers."""
    response = client.get("/health")
    assert "x-request-id" in response.headers
    assert response.headers["x-content-type-options"] == "nosniff"


def test_metrics_endpoint(client):
    """Test /metrics endpoint returns metrics."""
    response = client.get("/metrics")
    assert response.status_code == 200
    data = response.json()
    for key in ("total_requests", "total_errors", "p50_ms", "p95_ms", "cache_hit_rate", "custom"):
        assert key in data


def test_api_health(client):
    """Test the API health payload."""
    data = client.get("/api/health").json()
    assert data["status"] == "healthy"
    assert isinstance(data["cache_size"], int)
    assert "environment" in data
    assert "timestamp" in data


def test_lifespan_starts_and_stops_scheduler(app):
    """Test the app boots with its maintenance jobs."""
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer"}])
def test_email_requires_bearer_key(client, headers):
    """Test missing or malformed Authorization headers."""
    response = client.post("/api/gemini", json={"prompt": "hello"}, headers=headers)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "API key is required"
    assert body["code"] == "INVALID_API_KEY"


def test_email_generation(client, api_key):
    """Test a template request returns the parsed text."""
    result = GenerationResult("Enhanced email: Hi team,\n\nPlease review.", "gemini", "gemini-2.0-flash")
    with patch(EMAIL_GENERATE, new=AsyncMock(return_value=result)):
        response = client.post(
            "/api/gemini",
            json={"prompt": "pls review", "template": "professional"},
            headers=_auth(api_key),
        )
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "data": "Hi team,\n\nPlease review.",
        "provider": "gemini",
        "used_fallback": False,
        "cached": False,
    }


def test_email_training_request_uses_camel_case(client, api_key):
    """Test the trainingData field is accepted."""
    result = GenerationResult("Hello, could you fix it?", "gemini", "gemini-2.0-flash")
    payload = {
        "prompt": "hey fix the bug",
        "trainingData": {
            "input": "hey can you send me the report by friday",
            "output": "Hello, could you please send me the report by Friday? Thank you.",
        },
    }
    with patch(EMAIL_GENERATE, new=AsyncMock(return_value=result)):
        response = client.post("/api/gemini", json=payload, headers=_auth(api_key))
    assert response.status_code == 200
    assert response.json()["data"] == "Hello, could you fix it?"


def test_email_invalid_body(client, api_key):
    """Test validation failures are 400 with a field message."""
    response = client.post("/api/gemini", json={"template": "professional"}, headers=_auth(api_key))
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"


def test_email_rejects_placeholder_key(client):
    """Test the strict key check on the server."""
    response = client.post(
        "/api/gemini", json={"prompt": "hello"}, headers=_auth("AIzaSyTestKey1234567890abc")
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid API key - appears to be a test key"


def test_email_provider_error_status(client, api_key):
    """Test classified provider errors keep their status."""
    quota = AppError("quota", code=ErrorCode.QUOTA_EXCEEDED, status_code=429, retryable=True)
    with patch(EMAIL_GENERATE, new=AsyncMock(side_effect=quota)):
        response = client.post("/api/gemini", json={"prompt": "hello"}, headers=_auth(api_key))
    assert response.status_code == 429
    assert response.json()["code"] == "QUOTA_EXCEEDED"
    assert response.json()["retryable"] is True


def test_key_test_success(client, api_key):
    """Test the key probe endpoint."""
    with patch(PROBE, new=AsyncMock(return_value=None)):
        response = client.post("/api/gemini/test", headers=_auth(api_key))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "API key is valid"}


def test_key_test_rate_limited(client, api_key):
    """Test a rate-limited key is a distinct retryable error."""
    quota = AppError("quota", code=ErrorCode.QUOTA_EXCEEDED, status_code=429, retryable=True)
    with patch(PROBE, new=AsyncMock(side_effect=quota)):
        response = client.post("/api/gemini/test", headers=_auth(api_key))
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"


def test_slides_generation(client, api_key):
    """Test a presentation is returned with numbered slides."""
    outline = [{"title": "Intro", "content": ["One", "Two"]}]

    async def fake(prompt, key, **kwargs):
        if kwargs.get("allow_fallback") is False:
            return GenerationResult("Say hello.", "gemini", "m")
        return GenerationResult(json.dumps(outline), "gemini", "m")

    with patch(SLIDES_GENERATE, new=AsyncMock(side_effect=fake)):
        response = client.post(
            "/api/slides/generate",
            json={"topic": "Remote work", "theme": "minimal", "apiKey": api_key},
        )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["topic"] == "Remote work"
    assert data["slides"][0]["id"] == "slide-1"
    assert data["slides"][0]["speaker_notes"] == "Say hello."


def test_slides_require_key(client):
    """Test the slide endpoint's key check."""
    response = client.post("/api/slides/generate", json={"topic": "Remote work", "theme": "minimal"})
    assert response.status_code == 400
    assert response.json()["error"] == "API key is required"


def test_rate_limit_returns_429(app, client):
    """Test the per-client limit and Retry-After header."""
    app.state.rate_limiter = RateLimiter({"default": (1, 60)})
    first = client.post("/api/gemini/test")
    second = client.post("/api/gemini/test")
    assert first.status_code == 400
    assert second.status_code == 429
    assert second.json()["code"] == "RATE_LIMITED"
    assert int(second.headers["retry-after"]) > 0
