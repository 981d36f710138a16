"""Root redirector: where a visit to `/` ends up."""
from __future__ import annotations

from .domain import classify_role
from .routes import RouteIntent, home_route_for_role, path_for
from .sessions import SessionContext, get_current_user


async def root_destination(ctx: SessionContext) -> str:
    """Return the login path for anonymous visitors, else the role's home path."""
    identity = await get_current_user(ctx)
    if identity is None:
        return path_for(RouteIntent.LOGIN)
    return path_for(home_route_for_role(classify_role(identity)))


__all__ = ["root_destination"]
