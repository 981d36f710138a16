"""
Access-token refresh tests.

Requirements:
- a session outlives its Supabase access token; the token is refreshed with
  the stored refresh token and rotated in place
- a rejected refresh ends the session (anonymous, so guarded pages go to /login)
- an unreachable token endpoint is a 503, not a logout
- a valid token is used as-is without any refresh call
"""
from __future__ import annotations

import httpx
import pytest
import requests
from httpx import ASGITransport

from backend.identity_access import stores
from backend.identity_access.oidc import SessionTokens, TokenExchangeError

pytestmark = pytest.mark.anyio("asyncio")

BASE = 2_000_000


def _client(web) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=web.app), base_url="http://test")


class FakeRefresh:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def refresh_session(self, *, refresh_token):
        self.calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def clock(monkeypatch):
    state = {"now": BASE}
    monkeypatch.setattr(stores, "_now", lambda: state["now"])
    return state


def _expired_session(web, fake_backend, clock, *, refresh_token="rt-old"):
    fake_backend.add_user("at-old", role="employee", user_id="u-1")
    fake_backend.users["at-new"] = fake_backend.users["at-old"]
    rec = web.SESSION_STORE.create(
        access_token="at-old", refresh_token=refresh_token, ttl_seconds=28800, access_expires_in=3600
    )
    clock["now"] = BASE + 3600
    return rec


@pytest.mark.anyio
async def test_expired_token_is_refreshed_and_rotated(web, fake_backend, monkeypatch, clock):
    fake = FakeRefresh(result=SessionTokens(access_token="at-new", refresh_token="rt-new", expires_in=3600))
    monkeypatch.setattr(web, "OAUTH", fake)
    rec = _expired_session(web, fake_backend, clock)
    async with _client(web) as client:
        client.cookies.set(web.SESSION_COOKIE_NAME, rec.session_id)
        r = await client.get("/parking", follow_redirects=False)
    assert r.status_code == 200
    assert fake.calls == ["rt-old"]
    sess = web.SESSION_STORE.get(rec.session_id)
    assert sess.access_token == "at-new"
    assert sess.refresh_token == "rt-new"
    assert sess.access_expires_at == BASE + 3600 + 3600
    assert ("fetch_user", "at-new") in fake_backend.calls


@pytest.mark.anyio
async def test_refresh_without_new_refresh_token_keeps_old_one(web, fake_backend, monkeypatch, clock):
    fake = FakeRefresh(result=SessionTokens(access_token="at-new", refresh_token="", expires_in=3600))
    monkeypatch.setattr(web, "OAUTH", fake)
    rec = _expired_session(web, fake_backend, clock)
    async with _client(web) as client:
        client.cookies.set(web.SESSION_COOKIE_NAME, rec.session_id)
        await client.get("/parking", follow_redirects=False)
    assert web.SESSION_STORE.get(rec.session_id).refresh_token == "rt-old"


@pytest.mark.anyio
async def test_rejected_refresh_ends_session(web, fake_backend, monkeypatch, clock, caplog):
    monkeypatch.setattr(web, "OAUTH", FakeRefresh(error=TokenExchangeError("token_refresh_failed")))
    rec = _expired_session(web, fake_backend, clock)
    async with _client(web) as client:
        client.cookies.set(web.SESSION_COOKIE_NAME, rec.session_id)
        r = await client.get("/parking", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/login"
    assert web.SESSION_STORE.get(rec.session_id) is None
    assert not any(c[0] == "fetch_user" for c in fake_backend.calls)
    assert any("refresh rejected" in rec_.getMessage() for rec_ in caplog.records)


@pytest.mark.anyio
async def test_unreachable_token_endpoint_is_503(web, fake_backend, monkeypatch, clock):
    monkeypatch.setattr(web, "OAUTH", FakeRefresh(error=requests.ConnectionError("down")))
    rec = _expired_session(web, fake_backend, clock)
    async with _client(web) as client:
        client.cookies.set(web.SESSION_COOKIE_NAME, rec.session_id)
        r = await client.get("/parking", follow_redirects=False)
    assert r.status_code == 503
    assert r.headers["Cache-Control"] == "private, no-store"
    assert web.SESSION_STORE.get(rec.session_id) is not None


@pytest.mark.anyio
async def test_expired_token_without_refresh_token_ends_session(web, fake_backend, monkeypatch, clock):
    fake = FakeRefresh()
    monkeypatch.setattr(web, "OAUTH", fake)
    rec = _expired_session(web, fake_backend, clock, refresh_token="")
    async with _client(web) as client:
        client.cookies.set(web.SESSION_COOKIE_NAME, rec.session_id)
        r = await client.get("/parking", follow_redirects=False)
    assert r.headers["location"] == "/login"
    assert fake.calls == []
    assert web.SESSION_STORE.get(rec.session_id) is None


@pytest.mark.anyio
async def test_valid_token_is_not_refreshed(web, fake_backend, monkeypatch, clock):
    fake = FakeRefresh()
    monkeypatch.setattr(web, "OAUTH", fake)
    fake_backend.add_user("at-live", role="employee")
    rec = web.SESSION_STORE.create(
        access_token="at-live", refresh_token="rt", ttl_seconds=28800, access_expires_in=3600
    )
    clock["now"] = BASE + 1800
    async with _client(web) as client:
        client.cookies.set(web.SESSION_COOKIE_NAME, rec.session_id)
        r = await client.get("/parking", follow_redirects=False)
    assert r.status_code == 200
    assert fake.calls == []
