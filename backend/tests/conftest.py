"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make `backend.*` importable, and
give every test a fresh auth collaborator plus fresh in-memory stores so
sessions never leak between cases.
"""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import sys
from typing import Dict, List, Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from backend.identity_access.domain import Profile, Role, parse_role  # noqa: E402
from backend.identity_access.supabase_auth import AuthBackendUnavailable, AuthUser  # noqa: E402


class FakeAuthBackend:
    """In-memory stand-in for the Supabase collaborator.

    Records every call so tests can assert that anonymous requests perform no
    lookups at all.
    """

    def __init__(self) -> None:
        self.users: Dict[str, AuthUser] = {}
        self.profiles: Dict[str, Profile] = {}
        self.calls: List[tuple] = []
        self.signed_out: List[str] = []
        self.fail_with: Optional[str] = None

    def add_user(
        self,
        token: str,
        *,
        role: Optional[str] = "employee",
        user_id: Optional[str] = None,
        email: str = "ana.garcia@gruposiete.es",
        full_name: str = "Ana García",
        with_profile: bool = True,
    ) -> AuthUser:
        uid = user_id or f"user-{token}"
        user = AuthUser(id=uid, email=email)
        self.users[token] = user
        if with_profile:
            self.profiles[uid] = Profile(user_id=uid, full_name=full_name, role=parse_role(role))
        return user

    async def fetch_user(self, access_token: str) -> Optional[AuthUser]:
        self.calls.append(("fetch_user", access_token))
        if self.fail_with:
            raise AuthBackendUnavailable(self.fail_with)
        return self.users.get(access_token)

    async def fetch_profile(self, user_id: str) -> Optional[Profile]:
        self.calls.append(("fetch_profile", user_id))
        if self.fail_with:
            raise AuthBackendUnavailable(self.fail_with)
        return self.profiles.get(user_id)

    async def update_profile_role(self, user_id: str, role: Role) -> bool:
        self.calls.append(("update_profile_role", user_id, role))
        if self.fail_with:
            raise AuthBackendUnavailable(self.fail_with)
        profile = self.profiles.get(user_id)
        if profile is None:
            return False
        self.profiles[user_id] = replace(profile, role=role)
        return True

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_backend() -> FakeAuthBackend:
    return FakeAuthBackend()


@pytest.fixture(autouse=True)
def _dev_env(monkeypatch: pytest.MonkeyPatch):
    """Keep the startup guard permissive unless a test opts into prod."""
    monkeypatch.setenv("PARKING_ENV", "dev")
    monkeypatch.delenv("SESSION_TTL_SECONDS", raising=False)
    yield


@pytest.fixture
def web(monkeypatch: pytest.MonkeyPatch, fake_backend: FakeAuthBackend):
    """Return the `main` module wired to fresh stores and the fake backend."""
    from backend.identity_access.stores import SessionStore, StateStore
    from backend.web import main

    monkeypatch.setattr(main, "AUTH_BACKEND", fake_backend)
    monkeypatch.setattr(main, "STATE_STORE", StateStore())
    monkeypatch.setattr(main, "SESSION_STORE", SessionStore())
    return main


@pytest.fixture
def make_session(web, fake_backend: FakeAuthBackend):
    """Factory: register a user with `role` and return a fresh session id for them."""

    def _make(role: Optional[str] = "employee", *, with_profile: bool = True, token: Optional[str] = None) -> str:
        tok = token or f"tok-{role or 'none'}-{len(fake_backend.users)}"
        fake_backend.add_user(tok, role=role, with_profile=with_profile)
        return web.SESSION_STORE.create(access_token=tok).session_id

    return _make
