"""
Access guards.

Each guard returns a tagged result instead of aborting the caller:

- Allowed(identity): continue and render with this identity.
- Denied(path): stop, perform no further work, navigate to `path`.

Role guards delegate to `require_auth` so an anonymous visitor is always sent
to login before any role comparison happens.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .domain import Identity, Role, classify_role, has_privilege
from .routes import RouteIntent, path_for
from .sessions import SessionContext, get_current_user


@dataclass(frozen=True)
class Allowed:
    identity: Identity


@dataclass(frozen=True)
class Denied:
    path: str


GuardResult = Union[Allowed, Denied]


def check_role(identity: Identity, minimum: Role, *, fallback: RouteIntent = RouteIntent.DASHBOARD) -> GuardResult:
    """Pure role comparison shared by the role guards and page-level rules."""
    if has_privilege(classify_role(identity), minimum):
        return Allowed(identity)
    return Denied(path_for(fallback))


async def require_auth(ctx: SessionContext) -> GuardResult:
    identity = await get_current_user(ctx)
    if identity is None:
        return Denied(path_for(RouteIntent.LOGIN))
    return Allowed(identity)


async def require_management(ctx: SessionContext) -> GuardResult:
    """Allow `management` and `admin`; others go to the dashboard."""
    result = await require_auth(ctx)
    if isinstance(result, Denied):
        return result
    return check_role(result.identity, Role.MANAGEMENT)


async def require_admin(ctx: SessionContext) -> GuardResult:
    result = await require_auth(ctx)
    if isinstance(result, Denied):
        return result
    return check_role(result.identity, Role.ADMIN)


async def require_profile(ctx: SessionContext) -> GuardResult:
    """Allow only identities whose profile record exists.

    A missing profile is a data problem, not a crash: send the user to the
    dashboard instead of rendering a broken page.
    """
    result = await require_auth(ctx)
    if isinstance(result, Denied):
        return result
    if result.identity.profile is None:
        return Denied(path_for(RouteIntent.DASHBOARD))
    return result


__all__ = [
    "Allowed",
    "Denied",
    "GuardResult",
    "check_role",
    "require_admin",
    "require_auth",
    "require_management",
    "require_profile",
]
