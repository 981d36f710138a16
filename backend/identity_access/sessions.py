"""
Session resolver.

Every function here takes an explicit SessionContext instead of reading
request-global state, so resolution can be unit tested without a server.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from .domain import Identity, Profile
from .supabase_auth import AuthUser


class AuthBackend(Protocol):
    async def fetch_user(self, access_token: str) -> Optional[AuthUser]: ...

    async def fetch_profile(self, user_id: str) -> Optional[Profile]: ...


@dataclass(frozen=True)
class SessionContext:
    """Per-request auth context: the presented access token and the collaborator."""

    access_token: Optional[str]
    backend: AuthBackend


async def get_current_user(ctx: SessionContext) -> Optional[Identity]:
    """Return the Identity for the context, or None when there is no valid session.

    Raises AuthBackendUnavailable when the collaborator fails; absence of a
    session is never an error.
    """
    if not ctx.access_token:
        return None
    user = await ctx.backend.fetch_user(ctx.access_token)
    if user is None:
        return None
    profile = await ctx.backend.fetch_profile(user.id)
    return Identity(id=user.id, email=user.email, profile=profile)


__all__ = ["AuthBackend", "SessionContext", "get_current_user"]
