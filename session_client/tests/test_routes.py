"""Tests for session service routes."""
import httpx
import pytest
from fastapi.testclient import TestClient

from session_client.auth_cache import AccessTokenCache
from session_client.config import API_BASE_URL
from session_client.main import app
from session_client.token_manager import TokenManager


class Upstream:
    """Platform API stub: /auth/refresh plus any other path."""

    def __init__(self):
        self.refresh_response = httpx.Response(500)
        self.api_responses: list[httpx.Response] = []
        self.api_calls: list[httpx.Request] = []
        self.refresh_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/auth/refresh"):
            self.refresh_calls += 1
            return self.refresh_response
        self.api_calls.append(request)
        return self.api_responses.pop(0)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def client(upstream):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    original = (app.state.cache, app.state.manager, app.state.http_client)
    with TestClient(app) as c:
        store = app.state.store
        store.clear()
        app.state.cache = AccessTokenCache(store)
        app.state.manager = TokenManager(store, http_client=http_client, cache=app.state.cache)
        app.state.http_client = http_client
        yield c
        store.clear()
    app.state.cache, app.state.manager, app.state.http_client = original


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("service") == "session_client"


def test_session_logged_out(client):
    r = client.get("/session")
    assert r.status_code == 200
    assert r.json() == {"authenticated": False, "token_type": None, "expires_at": None, "expiring_soon": None}


def test_store_session_then_status(client, make_token):
    token = make_token(expires_in=600, now=4_000_000_000)
    r = client.post("/session", json={"access_token": token, "refresh_token": "rt", "token_type": "Bearer"})
    assert r.status_code == 204
    data = client.get("/session").json()
    assert data["authenticated"] is True
    assert data["token_type"] == "Bearer"
    assert data["expires_at"] == 4_000_000_600
    assert data["expiring_soon"] is False
    assert token not in str(data)


def test_store_session_requires_access_token(client):
    r = client.post("/session", json={"access_token": "", "refresh_token": "rt"})
    assert r.status_code == 400
    r = client.post("/session", json={"refresh_token": "rt"})
    assert r.status_code == 422


def test_sign_out_clears_session(client, make_token):
    client.post("/session", json={"access_token": make_token(), "refresh_token": "rt"})
    assert client.get("/session").json()["authenticated"] is True
    r = client.delete("/session")
    assert r.status_code == 204
    assert client.get("/session").json()["authenticated"] is False
    assert app.state.store.load().is_empty


def test_force_refresh_success(client, upstream, make_token):
    new_token = make_token(expires_in=900)
    upstream.refresh_response = httpx.Response(200, json={"access_token": new_token, "token_type": "bearer"})
    client.post("/session", json={"access_token": make_token(), "refresh_token": "rt"})

    r = client.post("/session/refresh")
    assert r.status_code == 200
    assert r.json()["authenticated"] is True
    assert r.json()["token_type"] == "bearer"
    assert upstream.refresh_calls == 1
    assert app.state.store.get("access_token") == new_token


def test_force_refresh_failure(client, upstream, make_token):
    old_token = make_token()
    client.post("/session", json={"access_token": old_token, "refresh_token": "rt"})
    r = client.post("/session/refresh")
    assert r.status_code == 401
    assert r.json()["detail"]["error"] == "refresh_failed"
    assert app.state.store.get("access_token") == old_token


def test_force_refresh_without_credentials(client, upstream):
    r = client.post("/session/refresh")
    assert r.status_code == 401
    assert upstream.refresh_calls == 0


def test_proxy_attaches_token(client, upstream, make_token):
    token = make_token()
    client.post("/session", json={"access_token": token, "refresh_token": "rt"})
    upstream.api_responses = [httpx.Response(200, json={"videos": []})]

    r = client.get("/proxy/videos", params={"limit": "5"})
    assert r.status_code == 200
    assert r.json() == {"videos": []}
    sent = upstream.api_calls[0]
    assert str(sent.url).startswith(f"{API_BASE_URL}/videos")
    assert sent.url.params["limit"] == "5"
    assert sent.headers["Authorization"] == f"Bearer {token}"


def test_proxy_401_refresh_and_retry(client, upstream, make_token):
    new_token = make_token(expires_in=900)
    client.post("/session", json={"access_token": make_token(), "refresh_token": "rt"})
    upstream.refresh_response = httpx.Response(200, json={"access_token": new_token})
    upstream.api_responses = [
        httpx.Response(401, json={"detail": "expired"}),
        httpx.Response(200, json={"message": "Authenticated"}),
    ]

    r = client.get("/proxy/me")
    assert r.status_code == 200
    assert r.json() == {"message": "Authenticated"}
    assert upstream.refresh_calls == 1
    assert upstream.api_calls[1].headers["Authorization"] == f"Bearer {new_token}"


def test_proxy_401_refresh_fails_relays_401(client, upstream, make_token):
    client.post("/session", json={"access_token": make_token(), "refresh_token": "rt"})
    upstream.api_responses = [httpx.Response(401, json={"detail": "expired"})]

    r = client.get("/proxy/me")
    assert r.status_code == 401
    assert r.json() == {"detail": "expired"}
    assert len(upstream.api_calls) == 1
    assert upstream.refresh_calls == 1


def test_proxy_upstream_unreachable(client, upstream, make_token):
    client.post("/session", json={"access_token": make_token(), "refresh_token": "rt"})

    def fail(request):
        raise httpx.ConnectError("connection refused")

    app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(fail))
    r = client.get("/proxy/me")
    assert r.status_code == 502
    assert r.json()["detail"]["error"] == "upstream_unavailable"


def test_proxy_forwards_repeated_query_params(client, upstream, make_token):
    client.post("/session", json={"access_token": make_token(), "refresh_token": "rt"})
    upstream.api_responses = [httpx.Response(200, json={"videos": []})]

    r = client.get("/proxy/videos?tag=grace&tag=faith&limit=5")
    assert r.status_code == 200
    sent = upstream.api_calls[0]
    assert sent.url.params.get_list("tag") == ["grace", "faith"]
    assert sent.url.params["limit"] == "5"
