"""
Supabase-backed auth collaborator: user lookup by access token and profile load.

This adapter is intentionally duck-typed to avoid a hard dependency during
testing. The client is expected to expose:

- auth.get_user(jwt) -> object with `.user` (id, email) or None
- table(name).select(cols).eq(col, value).limit(n).execute() -> object with `.data`
- table(name).update(values).eq(col, value).execute() -> object with `.data` (updated rows)

Failure taxonomy:
- A token Supabase rejects (401/403/404 auth errors, or no user in the
  response) means "no session" and yields None.
- Anything else (network errors, 5xx, malformed responses) raises
  AuthBackendUnavailable. Callers must not retry or mask it.

Security:
    The client should be created with the service role key; profile lookups
    are keyed by the user id Supabase returned for the presented token, never
    by client input.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import asyncio
import logging

from .domain import Profile, Role

logger = logging.getLogger("parking.identity_access")

PROFILES_TABLE = "profiles"
_PROFILE_COLUMNS = "id, full_name, role"
# Auth API statuses that mean "this token does not identify a session".
_NO_SESSION_STATUSES = frozenset({401, 403, 404})


class AuthBackendUnavailable(Exception):
    """Raised when the auth/storage collaborator cannot answer."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str = ""


def _is_no_session_error(exc: Exception) -> bool:
    status = getattr(exc, "status", None)
    if isinstance(status, int) and status in _NO_SESSION_STATUSES:
        return True
    return exc.__class__.__name__ == "AuthSessionMissingError"


class SupabaseAuthBackend:
    """Auth collaborator using a supabase client (sync API, run off-loop)."""

    def __init__(self, client: Any):
        self._client = client

    # --- Sync helpers (executed in a worker thread) ---------------------------

    def _get_user_sync(self, access_token: str) -> Optional[AuthUser]:
        try:
            resp = self._client.auth.get_user(access_token)
        except Exception as exc:
            if _is_no_session_error(exc):
                return None
            raise AuthBackendUnavailable("auth_unavailable") from exc
        user = getattr(resp, "user", None) if resp is not None else None
        if user is None:
            return None
        user_id = getattr(user, "id", None)
        if not user_id:
            return None
        return AuthUser(id=str(user_id), email=str(getattr(user, "email", None) or ""))

    def _get_profile_sync(self, user_id: str) -> Optional[Profile]:
        try:
            resp = (
                self._client.table(PROFILES_TABLE)
                .select(_PROFILE_COLUMNS)
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise AuthBackendUnavailable("profiles_unavailable") from exc
        rows = getattr(resp, "data", None)
        if not isinstance(rows, list):
            raise AuthBackendUnavailable("profiles_invalid_response")
        if not rows:
            return None
        return Profile.from_row(rows[0])

    def _update_role_sync(self, user_id: str, role: Role) -> bool:
        try:
            resp = (
                self._client.table(PROFILES_TABLE)
                .update({"role": role.value})
                .eq("id", user_id)
                .execute()
            )
        except Exception as exc:
            raise AuthBackendUnavailable("profiles_unavailable") from exc
        rows = getattr(resp, "data", None)
        if not isinstance(rows, list):
            raise AuthBackendUnavailable("profiles_invalid_response")
        return bool(rows)

    # --- Async API ----------------------------------------------------------

    async def fetch_user(self, access_token: str) -> Optional[AuthUser]:
        return await asyncio.to_thread(self._get_user_sync, access_token)

    async def fetch_profile(self, user_id: str) -> Optional[Profile]:
        return await asyncio.to_thread(self._get_profile_sync, user_id)

    async def update_profile_role(self, user_id: str, role: Role) -> bool:
        """Set `profiles.role` for one user; False when no such profile exists."""
        return await asyncio.to_thread(self._update_role_sync, user_id, role)

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session at Supabase (global scope); failures are logged only."""
        try:
            await asyncio.to_thread(self._client.auth.admin.sign_out, access_token)
        except Exception as exc:
            logger.warning("Supabase sign-out failed: %s", exc.__class__.__name__)


class UnconfiguredAuthBackend:
    """Placeholder used when Supabase settings are missing.

    Every lookup fails loudly so a misconfigured deployment never looks like
    "nobody is logged in".
    """

    async def fetch_user(self, access_token: str) -> Optional[AuthUser]:
        raise AuthBackendUnavailable("supabase_not_configured")

    async def fetch_profile(self, user_id: str) -> Optional[Profile]:
        raise AuthBackendUnavailable("supabase_not_configured")

    async def update_profile_role(self, user_id: str, role: Role) -> bool:
        raise AuthBackendUnavailable("supabase_not_configured")

    async def sign_out(self, access_token: str) -> None:
        return None


def build_auth_backend(url: str, service_role_key: str):
    """Create the Supabase-backed collaborator, or the unconfigured placeholder."""
    if not url or not service_role_key:
        logger.warning("Supabase not configured; auth lookups will fail")
        return UnconfiguredAuthBackend()
    # Lazy import keeps the client library out of pure-domain tests.
    from supabase import create_client

    client = create_client(url, service_role_key)
    logger.info("Auth backend wired: Supabase")
    return SupabaseAuthBackend(client)


__all__ = [
    "AuthBackendUnavailable",
    "AuthUser",
    "PROFILES_TABLE",
    "SupabaseAuthBackend",
    "UnconfiguredAuthBackend",
    "build_auth_backend",
]
