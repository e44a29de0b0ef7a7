import pytest
import httpx
from fastapi.testclient import TestClient

from api import create_app
from config import ProxySettings
from routers.proxy import proxy_handlers


class Upstream:
    """Stands in for the third-party APIs and records every call made to them"""

    def __init__(self):
        self.calls = []
        self.timeouts = []
        self.responder = lambda request: httpx.Response(200, json={})

    def respond_with(self, responder):
        if isinstance(responder, httpx.Response):
            response = responder
            self.responder = lambda request: response
        else:
            self.responder = responder

    def handler(self, request):
        self.calls.append(request)
        return self.responder(request)

    @property
    def last(self):
        assert self.calls, "no upstream call was made"
        return self.calls[-1]


@pytest.fixture
def settings():
    """Settings with every integration configured"""
    return ProxySettings(
        environment="sandbox",
        qbo_client_id="test-client-id",
        qbo_client_secret="test-client-secret",
        stripe_secret_key="sk_test_platform",
        backend_url="https://backend.example.com/rest/v1",
        backend_api_key="anon-key",
        timeout_seconds=5.0,
        oauth_timeout_seconds=3.0,
    )

@pytest.fixture
def upstream(monkeypatch):
    """Route every wire call through an in-memory transport"""
    recorder = Upstream()

    def fake_client(settings, timeout):
        recorder.timeouts.append(timeout)
        return httpx.AsyncClient(transport=httpx.MockTransport(recorder.handler), timeout=timeout)

    monkeypatch.setattr(proxy_handlers, "create_client", fake_client)
    return recorder

@pytest.fixture
def make_client(upstream):
    """Build a TestClient for the given settings"""
    clients = []

    def factory(settings):
        client = TestClient(create_app(settings))
        client.__enter__()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.__exit__(None, None, None)

@pytest.fixture
def client(make_client, settings):
    return make_client(settings)
