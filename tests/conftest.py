"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

from typing import Any, Callable, Dict, Generator, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from alerthook.config import Settings, SecuritySettings, SoundSettings, ValidationSettings
from alerthook.core.pipeline import RequestContext
from alerthook.main import create_app


def build_settings(
    rate_limit: int = 5,
    allowed_ips: str = "",
    auth_token: str = "",
    trust_proxy_headers: bool = True,
    max_body_bytes: int = 102400,
    sound_enabled: bool = False,
) -> Settings:
    """Settings with test-friendly values, independent of the environment."""
    return Settings(
        log_level="DEBUG",
        security=SecuritySettings(
            rate_limit=rate_limit,
            rate_limit_window_seconds=60,
            allowed_ips=allowed_ips,
            auth_token=auth_token,
            trust_proxy_headers=trust_proxy_headers,
        ),
        validation=ValidationSettings(max_body_bytes=max_body_bytes),
        sound=SoundSettings(enabled=sound_enabled),
    )


@pytest.fixture
def test_settings() -> Settings:
    """Default test configuration."""
    return build_settings()


@pytest.fixture
def app_factory() -> Callable[..., FastAPI]:
    """Build a fresh app with overridden settings."""
    def factory(**overrides: Any) -> FastAPI:
        return create_app(build_settings(**overrides))
    return factory


@pytest.fixture
def client_factory(app_factory: Callable[..., FastAPI]) -> Generator[Callable[..., TestClient], None, None]:
    """Build started TestClients; all are closed at teardown."""
    clients = []

    def factory(**overrides: Any) -> TestClient:
        client = TestClient(app_factory(**overrides))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def test_client(test_settings: Settings) -> Generator[TestClient, None, None]:
    """FastAPI test client with test configuration."""
    with TestClient(create_app(test_settings)) as client:
        yield client


@pytest.fixture
def firing_alert() -> Dict[str, Any]:
    """Sample Grafana notification for a firing alert."""
    return {
        "receiver": "webhook-test",
        "status": "firing",
        "alerts": [
            {
                "status": "firing",
                "labels": {
                    "alertname": "HighCPU",
                    "instance": "node-exporter:9100",
                    "severity": "critical",
                },
                "annotations": {"summary": "CPU above 90%"},
                "startsAt": "2025-10-08T14:33:30Z",
                "endsAt": "0001-01-01T00:00:00Z",
            }
        ],
        "groupLabels": {"alertname": "HighCPU"},
        "title": "[FIRING:1] HighCPU",
    }


@pytest.fixture
def resolved_alert(firing_alert: Dict[str, Any]) -> Dict[str, Any]:
    """Same notification, resolved."""
    alert = dict(firing_alert)
    alert["status"] = "resolved"
    return alert


def make_request(
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    client: Optional[tuple] = ("127.0.0.1", 50000),
    method: str = "POST",
    path: str = "/test",
    chunks: Optional[List[bytes]] = None,
) -> Request:
    """
    Build a Starlette request with a fixed body, for guard unit tests.

    With ``chunks`` the body arrives in pieces, as in a chunked upload.
    """
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": raw_headers,
        "client": client,
        "server": ("testserver", 80),
        "scheme": "http",
        "http_version": "1.1",
    }

    pending = chunks if chunks is not None else [body]

    async def receive() -> Dict[str, Any]:
        piece = pending.pop(0) if pending else b""
        return {"type": "http.request", "body": piece, "more_body": bool(pending)}

    return Request(scope, receive)


def make_context(
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    client_key: str = "127.0.0.1",
) -> RequestContext:
    """RequestContext around a synthetic request."""
    return RequestContext(
        request_id="abcd1234",
        client_key=client_key,
        request=make_request(body=body, headers=headers),
    )


@pytest.fixture
def request_factory() -> Callable[..., Request]:
    return make_request


@pytest.fixture
def context_factory() -> Callable[..., RequestContext]:
    return make_context
