"""
In-memory stores for development: StateStore and SessionStore.

Why: Keep server-side state (PKCE code_verifier, post-login redirect) and the
Supabase tokens opaque to the client. For multi-instance deployments, replace
with a Redis/DB-backed store exposing the same methods.

Security: Cookies carry only an opaque session id. Tokens stay server-side.
Expired entries are purged on every `create()`, so abandoned logins cannot
grow the stores without bound.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import time

# Refresh slightly before Supabase would reject the access token.
ACCESS_TOKEN_LEEWAY_SECONDS = 30


def _now() -> int:
    return int(time.time())


@dataclass
class StateRecord:
    state: str
    code_verifier: str
    redirect: Optional[str]
    expires_at: int


class StateStore:
    def __init__(self):
        self._data: Dict[str, StateRecord] = {}

    def __len__(self) -> int:
        return len(self._data)

    def _purge_expired(self) -> None:
        now = _now()
        for key in [k for k, rec in self._data.items() if rec.expires_at < now]:
            del self._data[key]

    def create(self, *, code_verifier: str, ttl_seconds: int = 900, redirect: Optional[str] = None) -> StateRecord:
        self._purge_expired()
        state = secrets.token_urlsafe(24)
        rec = StateRecord(state=state, code_verifier=code_verifier, redirect=redirect, expires_at=_now() + ttl_seconds)
        self._data[state] = rec
        return rec

    def pop_valid(self, state: str) -> Optional[StateRecord]:
        """Consume a state exactly once; expired records are dropped."""
        rec = self._data.pop(state, None)
        if not rec:
            return None
        if rec.expires_at < _now():
            return None
        return rec


@dataclass
class SessionRecord:
    session_id: str
    access_token: str
    refresh_token: str
    expires_at: int
    # None when the token lifetime is unknown; such tokens are never refreshed.
    access_expires_at: Optional[int] = None

    def access_token_expired(self) -> bool:
        if self.access_expires_at is None:
            return False
        return self.access_expires_at - ACCESS_TOKEN_LEEWAY_SECONDS <= _now()


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def __len__(self) -> int:
        return len(self._data)

    def _purge_expired(self) -> None:
        now = _now()
        for key in [k for k, rec in self._data.items() if rec.expires_at < now]:
            del self._data[key]

    def create(
        self,
        *,
        access_token: str,
        refresh_token: str = "",
        ttl_seconds: int = 3600,
        access_expires_in: Optional[int] = None,
    ) -> SessionRecord:
        self._purge_expired()
        sid = secrets.token_urlsafe(24)
        now = _now()
        rec = SessionRecord(
            session_id=sid,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + ttl_seconds,
            access_expires_at=(now + access_expires_in) if access_expires_in is not None else None,
        )
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def rotate(self, session_id: str, *, access_token: str, refresh_token: str, access_expires_in: int) -> Optional[SessionRecord]:
        """Replace the tokens of a live session after a refresh; the session id is kept."""
        rec = self.get(session_id)
        if rec is None:
            return None
        rec.access_token = access_token
        rec.refresh_token = refresh_token
        rec.access_expires_at = _now() + access_expires_in
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)
