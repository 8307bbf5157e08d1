"""Pytest shared fixtures for the LLDAP CLI tests."""
import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import jwt
import pytest
import requests

from lldap_cli.config.settings import ClientConfig
from lldap_cli.core.audit import AuditTrail
from lldap_cli.core.lldap.client import LldapClient
from lldap_cli.core.lldap.rate_limit import RateLimitedExecutor
from lldap_cli.core.lldap.session import SessionManager

BASE_URL = "http://localhost:17170"
TOKEN_SECRET = "lldap-cli-test-signing-secret-0123456789"

_NO_JSON = object()


# ─────────────────────────────────────────────────────────────────────────────
# Environment Isolation
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep the developer's LLDAP_* variables and /etc/lldap.toml out of tests."""
    import os

    for name in list(os.environ):
        if name.startswith("LLDAP_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LLDAP_CONFIG", str(tmp_path / "missing-lldap.toml"))


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload: Any = None, status_code: int = 200, text: Optional[str] = None):
        self._payload = payload
        self.status_code = status_code
        if text is not None:
            self.text = text
        elif payload is _NO_JSON:
            self.text = "<html>not json</html>"
        else:
            self.text = json.dumps(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is _NO_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


def not_json(status_code: int = 200) -> StubResponse:
    return StubResponse(_NO_JSON, status_code)


class FakeServer:
    """Routes stubbed requests.get/post calls by method and URL suffix.

    Each route holds a queue of responses; the last one is repeated once the
    others are used up. A queued item may be a StubResponse, an exception
    instance (raised) or a callable ``(url, **kwargs) -> StubResponse``.
    """

    def __init__(self):
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self._routes: Dict[Tuple[str, str], List[Any]] = {}

    def add(self, method: str, path: str, *responses: Any) -> None:
        self._routes.setdefault((method, path), []).extend(responses)

    def handle(self, method: str, url: str, **kwargs) -> StubResponse:
        self.calls.append((method, url, kwargs))
        for (route_method, path), queue in self._routes.items():
            if route_method == method and url.endswith(path):
                if not queue:
                    break
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, BaseException):
                    raise item
                if callable(item):
                    return item(url, **kwargs)
                return item
        raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")

    def calls_to(self, path: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [c for c in self.calls if c[1].endswith(path)]


@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Prevent unit tests from reaching a live LLDAP server."""

    def _stub_post(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP POST in unit test: {url}")

    def _stub_get(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP GET in unit test: {url}")

    monkeypatch.setattr(requests, "post", _stub_post)
    monkeypatch.setattr(requests, "get", _stub_get)


@pytest.fixture()
def server(monkeypatch) -> FakeServer:
    """Fake LLDAP server wired into requests.get/post."""
    srv = FakeServer()
    monkeypatch.setattr(requests, "post", lambda url, *a, **kw: srv.handle("POST", url, **kw))
    monkeypatch.setattr(requests, "get", lambda url, *a, **kw: srv.handle("GET", url, **kw))
    return srv


# ─────────────────────────────────────────────────────────────────────────────
# JWT Token Helpers
# ─────────────────────────────────────────────────────────────────────────────
def make_token(exp_offset: Optional[int] = 3600, **claims: Any) -> str:
    """HS256 token expiring ``exp_offset`` seconds from now (no exp if None)."""
    payload: Dict[str, Any] = {"sub": "admin", **claims}
    if exp_offset is not None and "exp" not in claims:
        payload["exp"] = int(time.time()) + exp_offset
    return jwt.encode(payload, TOKEN_SECRET, algorithm="HS256")


@pytest.fixture()
def valid_token() -> str:
    return make_token(3600)


@pytest.fixture()
def expired_token() -> str:
    return make_token(-3600)


# ─────────────────────────────────────────────────────────────────────────────
# Client Fixtures
# ─────────────────────────────────────────────────────────────────────────────
class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleeps() -> List[float]:
    """Delays passed to the executor's sleep, in order."""
    return []


@pytest.fixture()
def config() -> ClientConfig:
    return ClientConfig(http_url=BASE_URL, username="admin", password="Secret-pass1")


@pytest.fixture()
def make_client(clock, sleeps) -> Callable[..., LldapClient]:
    """Build an LldapClient with a fake clock and a recording sleep."""

    def _make(cfg: ClientConfig) -> LldapClient:
        audit = AuditTrail()
        session = SessionManager(cfg, audit=audit, clock=clock)
        return LldapClient(cfg, session=session, executor=RateLimitedExecutor(sleep=sleeps.append))

    return _make


@pytest.fixture()
def client(make_client, config) -> LldapClient:
    return make_client(config)


def graphql_data(data: Any) -> StubResponse:
    return StubResponse({"data": data})


def login_response(token: Optional[str] = None, refresh_token: str = "refresh-abc") -> StubResponse:
    return StubResponse({"token": token or make_token(3600), "refreshToken": refresh_token})


class FakeClient:
    """Records GraphQL documents and answers with queued ``data`` payloads."""

    def __init__(self, *responses: Any, config: Optional[ClientConfig] = None):
        self.responses = list(responses)
        self.queries: List[Tuple[str, Optional[Dict[str, Any]], Optional[str]]] = []
        self.config = config or ClientConfig(http_url=BASE_URL, username="admin", token=make_token(3600))
        self.audit = AuditTrail()
        self.authenticated = 0

    def query(self, document, variables=None, upload_file=None):
        self.queries.append((document, variables, upload_file))
        if not self.responses:
            raise AssertionError(f"Unexpected query: {document}")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def ensure_authenticated(self):
        self.authenticated += 1

    def get_token(self):
        return self.config.token

    def validate_username(self, username):
        from lldap_cli.core import validators
        return validators.validate_username(username, audit=self.audit)

    def validate_email(self, email):
        from lldap_cli.core import validators
        return validators.validate_email(email, audit=self.audit)

    def validate_string_input(self, value, field_name):
        from lldap_cli.core import validators
        return validators.validate_generic_string(value, field_name, audit=self.audit)


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "critical: marks tests as critical security tests (P0 priority)"
    )
