"""
Authentication-related FastAPI routes (router-only module).

Why:
    Keep the login page and the Supabase OAuth (PKCE) endpoints in a dedicated
    router, separate from the guarded pages in `main.py`.

Notes:
    - This module imports `main` inside functions to reuse the shared OAuth
      client, state/session stores, auth collaborator and cookie policy. Tests
      monkeypatch those globals on `main`.
"""

from __future__ import annotations

from html import escape
import asyncio
import logging
import re

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
import requests

from backend.identity_access.domain import classify_role
from backend.identity_access.guards import Allowed, require_auth
from backend.identity_access.oidc import OAuthClient, TokenExchangeError
from backend.identity_access.routes import RouteIntent, home_route_for_role, path_for
from backend.identity_access.sessions import SessionContext
from backend.web import config as _cfg
from backend.web.components import Layout
from backend.web.routes.security import _is_same_origin, csrf_forbidden


auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("parking.web.auth")

# Single source of truth for allowed in-app redirect paths
# Disallow double slashes and path traversal (".."), allow dots in names
INAPP_PATH_PATTERN = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/]*$")
MAX_INAPP_REDIRECT_LEN = 256

CALLBACK_ERROR_URL = f"{path_for(RouteIntent.LOGIN)}?error=auth_callback_error"
REDIRECT_HEADERS = {"Cache-Control": "private, no-store"}

LOGIN_ERROR_MESSAGES = {
    "auth_callback_error": "No se ha podido completar el inicio de sesión. Inténtalo de nuevo.",
}


def _is_inapp_path(value: str | None) -> bool:
    """Return True for absolute in-app paths like "/parking"; reject external URLs."""
    if not isinstance(value, str) or not value:
        return False
    if len(value) > MAX_INAPP_REDIRECT_LEN:
        return False
    return bool(INAPP_PATH_PATTERN.match(value))


async def _session_context(request: Request) -> SessionContext:
    from backend.web import main

    return await main.get_session_context(request)


def _render_login(error: str | None) -> str:
    message = LOGIN_ERROR_MESSAGES.get(error or "")
    alert = f'<div class="alert alert-error" role="alert">{escape(message)}</div>' if message else ""
    return f"""<div class="login-card">
        <h1>GRUPOSIETE Parking</h1>
        <p class="text-muted">Accede con tu cuenta corporativa de Microsoft.</p>
        {alert}
        <a class="btn btn-primary" href="/auth/login">Iniciar sesión con Microsoft</a>
    </div>"""


@auth_router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, error: str | None = None, ctx: SessionContext = Depends(_session_context)):
    """
    Public login page.

    Behavior:
        - A request that already carries a valid session goes to the role's
          home route instead of seeing the login form again.
        - `?error=auth_callback_error` shows a generic failure message.
    Permissions:
        Public.
    """
    result = await require_auth(ctx)
    if isinstance(result, Allowed):
        home = path_for(home_route_for_role(classify_role(result.identity)))
        return RedirectResponse(url=home, status_code=302, headers=REDIRECT_HEADERS)
    layout = Layout(title="Iniciar sesión", content=_render_login(error), current_path=request.url.path)
    return HTMLResponse(layout.render(), headers={"Cache-Control": "private, no-store"})


@auth_router.get("/auth/login")
async def auth_login(request: Request, next: str | None = None):
    """
    Start the Supabase OAuth flow with PKCE and server-side state.

    Behavior:
        - Generates code_verifier + S256 code_challenge.
        - Validates optional `next` to be an absolute in-app path; external
          URLs are dropped. Persists it with the generated state.
        - Redirects to the Supabase authorize endpoint for the configured
          provider (Microsoft Entra ID).
    Permissions:
        Public.
    """
    from backend.web import main

    code_verifier = OAuthClient.generate_code_verifier()
    code_challenge = OAuthClient.code_challenge_s256(code_verifier)
    safe_redirect = next if _is_inapp_path(next) else None
    rec = main.STATE_STORE.create(code_verifier=code_verifier, redirect=safe_redirect)
    url = main.OAUTH.build_authorization_url(state=rec.state, code_challenge=code_challenge)
    return RedirectResponse(url=url, status_code=302, headers=REDIRECT_HEADERS)


@auth_router.get("/auth/callback")
async def auth_callback(code: str | None = None, state: str | None = None, error: str | None = None):
    """
    Complete the OAuth flow: validate state, exchange the code, open a session.

    Behavior:
        - Any failure (provider error, missing/unknown state, exchange failure)
          redirects to the login page with `error=auth_callback_error`.
        - On success stores the Supabase tokens server-side and sets the opaque
          `parking_session` cookie, then redirects to the stored in-app target
          or `/`.
    Permissions:
        Public.
    """
    from backend.web import main

    if error or not code or not state:
        logger.warning("OAuth callback rejected: provider_error=%s missing_params=%s", bool(error), not (code and state))
        return RedirectResponse(url=CALLBACK_ERROR_URL, status_code=302, headers=REDIRECT_HEADERS)

    rec = main.STATE_STORE.pop_valid(state)
    if rec is None:
        logger.warning("OAuth callback rejected: unknown or expired state")
        return RedirectResponse(url=CALLBACK_ERROR_URL, status_code=302, headers=REDIRECT_HEADERS)

    try:
        tokens = await asyncio.to_thread(
            main.OAUTH.exchange_code_for_session, code=code, code_verifier=rec.code_verifier
        )
    except TokenExchangeError as exc:
        logger.warning("OAuth code exchange failed: %s", exc.code)
        return RedirectResponse(url=CALLBACK_ERROR_URL, status_code=302, headers=REDIRECT_HEADERS)
    except requests.RequestException as exc:
        logger.warning("OAuth code exchange failed: %s", exc.__class__.__name__)
        return RedirectResponse(url=CALLBACK_ERROR_URL, status_code=302, headers=REDIRECT_HEADERS)

    ttl = _cfg.session_ttl_seconds()
    sess = main.SESSION_STORE.create(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        ttl_seconds=ttl,
        access_expires_in=tokens.expires_in,
    )
    resp = RedirectResponse(url=rec.redirect or "/", status_code=302, headers=REDIRECT_HEADERS)
    main._set_session_cookie(resp, sess.session_id, max_age=ttl)
    return resp


@auth_router.post("/auth/logout")
async def auth_logout(request: Request):
    """
    End the session (server-side and at Supabase) and clear the cookie.

    Behavior:
        - Cross-origin requests are refused with 403 (CSRF); the session stays.
        - Best effort: Supabase sign-out failures are logged, never surfaced.
        - Otherwise redirects to `/login` with the cookie expired.
    Permissions:
        Public (idempotent without a session).
    """
    from backend.web import main

    if not _is_same_origin(request):
        logger.warning("Logout refused: cross-origin request")
        return csrf_forbidden()
    sid = request.cookies.get(main.SESSION_COOKIE_NAME)
    if sid:
        rec = main.SESSION_STORE.get(sid)
        if rec:
            await main.AUTH_BACKEND.sign_out(rec.access_token)
        main.SESSION_STORE.delete(sid)
    resp = RedirectResponse(url=path_for(RouteIntent.LOGIN), status_code=302, headers=REDIRECT_HEADERS)
    opts = main._session_cookie_options()
    resp.delete_cookie(
        key=main.SESSION_COOKIE_NAME,
        path="/",
        secure=opts["secure"],
        httponly=True,
        samesite=opts["samesite"],
    )
    return resp
