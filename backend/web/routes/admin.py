"""
Admin write endpoints (router-only module).

Currently: change a user's role. Every handler runs `require_admin` before any
validation or storage work, then the same-origin CSRF check.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from backend.identity_access.domain import parse_role
from backend.identity_access.guards import Denied, require_admin
from backend.identity_access.sessions import SessionContext
from backend.web.routes.auth import _session_context
from backend.web.routes.security import _is_same_origin, csrf_forbidden


admin_router = APIRouter(tags=["Admin"])
logger = logging.getLogger("parking.web.admin")

_PRIVATE = {"Cache-Control": "private, no-store"}


class RoleUpdate(BaseModel):
    role: str = Field(..., min_length=1, max_length=32)


@admin_router.post("/admin/users/{user_id}/role")
async def update_user_role(
    request: Request,
    user_id: str,
    payload: RoleUpdate,
    ctx: SessionContext = Depends(_session_context),
):
    """Set the role of a user profile (admin only).

    Behavior:
        - 302 to the guard's target for anonymous or non-admin callers
        - 403 `csrf_violation` for cross-origin browser requests
        - 400 `invalid_role` unless the role is exactly one of the known roles
        - 404 when no profile exists for `user_id`
        - 200 with `{user_id, role}` on success

    Permissions:
        Caller must have role `admin`.
    """
    from backend.web import main

    result = await require_admin(ctx)
    if isinstance(result, Denied):
        return RedirectResponse(url=result.path, status_code=302, headers=_PRIVATE)
    if not _is_same_origin(request):
        return csrf_forbidden()
    role = parse_role(payload.role)
    if role is None:
        return JSONResponse({"error": "bad_request", "detail": "invalid_role"}, status_code=400, headers=_PRIVATE)
    updated = await main.AUTH_BACKEND.update_profile_role(user_id, role)
    if not updated:
        return JSONResponse({"error": "not_found"}, status_code=404, headers=_PRIVATE)
    logger.info("Role of %s set to %s by %s", user_id, role.value, result.identity.id)
    return JSONResponse({"user_id": user_id, "role": role.value}, headers=_PRIVATE)
