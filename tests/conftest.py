"""Pytest shared fixtures for the user API client."""
import json
import pathlib
import sys
import threading
import time
from datetime import datetime, timedelta
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from userapi.core.http import CredentialManager, reset_credential_manager

TOKEN_URL = "http://auth.local/oauth2/token"
API_BASE_URL = "http://api.local/api"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting the network.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")

    monkeypatch.setattr(requests.Session, "request", _blocked)


@pytest.fixture(autouse=True)
def _fresh_credential_manager():
    """Each test starts without a shared credential manager."""
    reset_credential_manager()
    yield
    reset_credential_manager()


# ─────────────────────────────────────────────────────────────────────────────
# Stubs
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code: int = 200, text: Optional[str] = None,
                 headers: Optional[dict] = None):
        self._payload = payload
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.headers = headers or {}

    def json(self):
        return json.loads(self.text)


class FakeTokenEndpoint:
    """Stands in for the requests.Session used by CredentialManager.

    Issues ``tok-1``, ``tok-2``... in request order and records every call.
    """

    def __init__(self, expires_in: int = 3600):
        self.expires_in = expires_in
        self.status_code = 200
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.on_request = None
        self.calls = []
        self._lock = threading.Lock()

    def post(self, url, data=None, auth=None, headers=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "data": dict(data or {}), "auth": auth, "headers": headers})
            number = len(self.calls)
        if self.delay:
            time.sleep(self.delay)
        if self.on_request is not None:
            self.on_request()
        if self.error is not None:
            raise self.error
        if self.status_code != 200:
            return StubResponse({"error": "invalid_client"}, status_code=self.status_code)
        return StubResponse({"access_token": f"tok-{number}", "expires_in": self.expires_in})

    def calls_for(self, scope: str) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call["data"].get("scope") == scope)


class FakeClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def token_endpoint():
    return FakeTokenEndpoint()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def manager(token_endpoint, clock):
    """CredentialManager for client ``abc`` / ``xyz`` with a 5 minute buffer."""
    return CredentialManager(
        TOKEN_URL,
        "abc",
        "xyz",
        expiry_buffer=timedelta(minutes=5),
        session=token_endpoint,
        now=clock,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running API)"
    )
