"GRUPOSIETE Parking"
from __future__ import annotations

from typing import Awaitable, Callable
import asyncio
import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
import requests

from backend.identity_access.domain import Identity, Role, classify_role
from backend.identity_access.guards import (
    Denied,
    GuardResult,
    require_admin,
    require_auth,
    require_management,
    require_profile,
)
from backend.identity_access.oidc import OAuthClient, OAuthConfig, TokenExchangeError
from backend.identity_access.redirector import root_destination
from backend.identity_access.routes import DEPRECATED_PATHS, RouteIntent, path_for
from backend.identity_access.sessions import SessionContext
from backend.identity_access.stores import SessionRecord, SessionStore, StateStore
from backend.identity_access.supabase_auth import AuthBackendUnavailable, build_auth_backend
from backend.web import config as _cfg
from backend.web.auth_utils import cookie_opts
from backend.web.components import Layout


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via PARKING_ENABLE_DOTENV (default true outside
      pytest).
    """
    import sys

    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("PARKING_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return _cfg.current_environment()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("parking.web")
SETTINGS = AuthSettings()
SESSION_COOKIE_NAME = "parking_session"
PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}

app = FastAPI(title="GRUPOSIETE Parking", description="Reserva de plazas de parking corporativo", version="0.1.0")

# --- OAuth, Stores & Auth Collaborator -----------------------------------------


def load_oauth_config() -> OAuthConfig:
    return OAuthConfig(
        supabase_url=_cfg.supabase_url() or "http://localhost:54321",
        anon_key=_cfg.supabase_anon_key(),
        redirect_uri=_cfg.redirect_uri(),
        provider=_cfg.oauth_provider(),
        scopes=_cfg.oauth_scopes(),
    )


OAUTH_CFG = load_oauth_config()
OAUTH = OAuthClient(OAUTH_CFG)
STATE_STORE = StateStore()
SESSION_STORE = SessionStore()
AUTH_BACKEND = build_auth_backend(_cfg.supabase_url(), _cfg.supabase_service_role_key())

# --- Session Helpers ------------------------------------------------------------


def _session_cookie_options() -> dict:
    return cookie_opts(SETTINGS.environment)


def _set_session_cookie(response: Response, value: str, *, max_age: int | None = None) -> None:
    opts = _session_cookie_options()
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


async def _current_access_token(rec: SessionRecord) -> str | None:
    """Return a usable access token for the session, refreshing it once expired.

    A refresh Supabase rejects ends the session. A transport failure raises
    AuthBackendUnavailable instead, so an outage never looks like a logout.
    """
    if not rec.access_token_expired():
        return rec.access_token
    if not rec.refresh_token:
        SESSION_STORE.delete(rec.session_id)
        return None
    try:
        tokens = await asyncio.to_thread(OAUTH.refresh_session, refresh_token=rec.refresh_token)
    except TokenExchangeError as exc:
        logger.warning("Session refresh rejected: %s", exc.code)
        SESSION_STORE.delete(rec.session_id)
        return None
    except requests.RequestException as exc:
        raise AuthBackendUnavailable("token_refresh_unavailable") from exc
    SESSION_STORE.rotate(
        rec.session_id,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token or rec.refresh_token,
        access_expires_in=tokens.expires_in,
    )
    return tokens.access_token


async def get_session_context(request: Request) -> SessionContext:
    """Build the explicit auth context for this request.

    The cookie carries only an opaque session id; the Supabase access token is
    looked up server-side and refreshed when it has expired. Unknown or expired
    ids yield an empty context.
    """
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    access_token = None
    if sid:
        rec = SESSION_STORE.get(sid)
        if rec:
            access_token = await _current_access_token(rec)
    return SessionContext(access_token=access_token, backend=AUTH_BACKEND)


def _redirect(path: str) -> RedirectResponse:
    return RedirectResponse(url=path, status_code=302, headers=PRIVATE_HEADERS)


def _page(request: Request, identity: Identity | None, title: str, content: str) -> HTMLResponse:
    layout = Layout(title=title, content=content, identity=identity, current_path=request.url.path)
    return HTMLResponse(layout.render(), headers=PRIVATE_HEADERS)


def _placeholder(heading: str, text: str) -> str:
    return f'<div class="container"><h1>{heading}</h1><p class="text-muted">{text}</p></div>'


async def _guarded_page(
    request: Request,
    ctx: SessionContext,
    guard: Callable[[SessionContext], Awaitable[GuardResult]],
    title: str,
    content: str,
) -> Response:
    result = await guard(ctx)
    if isinstance(result, Denied):
        return _redirect(result.path)
    return _page(request, result.identity, title, content)


# --- Error Handling & Security Headers -----------------------------------------


@app.exception_handler(AuthBackendUnavailable)
async def auth_backend_unavailable_handler(request: Request, exc: AuthBackendUnavailable):
    # Never a redirect: an outage is not a logout.
    logger.warning("Auth backend unavailable on %s: %s", request.url.path, exc.code)
    content = _placeholder(
        "Servicio no disponible",
        "No hemos podido verificar tu sesión. Inténtalo de nuevo en unos minutos.",
    )
    layout = Layout(title="Servicio no disponible", content=content, current_path=request.url.path)
    return HTMLResponse(layout.render(), status_code=503, headers=PRIVATE_HEADERS)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:; frame-ancestors 'self';",
    )
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Routers --------------------------------------------------------------------

from backend.web.routes.admin import admin_router  # noqa: E402
from backend.web.routes.auth import auth_router  # noqa: E402

app.include_router(auth_router)
app.include_router(admin_router)

# --- Route Handlers -------------------------------------------------------------


@app.get("/")
async def home(ctx: SessionContext = Depends(get_session_context)):
    return _redirect(await root_destination(ctx))


@app.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request, ctx: SessionContext = Depends(get_session_context)):
    result = await require_auth(ctx)
    if isinstance(result, Denied):
        return _redirect(result.path)
    if classify_role(result.identity) is Role.ADMIN:
        content = _placeholder("Panel", "Ocupación de plazas, reservas recientes y alertas.")
        return _page(request, result.identity, "Panel", content)
    content = _placeholder("Dashboard", "Resumen de tu actividad de parking.")
    return _page(request, result.identity, "Dashboard", content)


@app.get("/parking", response_class=HTMLResponse)
async def parking(request: Request, ctx: SessionContext = Depends(get_session_context)):
    content = _placeholder("Parking", "Calendario de disponibilidad y reservas de plazas.")
    return await _guarded_page(request, ctx, require_auth, "Parking", content)


@app.get("/parking/cessations", response_class=HTMLResponse)
async def parking_cessations(request: Request, ctx: SessionContext = Depends(get_session_context)):
    content = _placeholder("Mis Cesiones", "Gestiona las cesiones de tu plaza asignada.")
    return await _guarded_page(request, ctx, require_management, "Mis Cesiones", content)


@app.get("/parking/map", response_class=HTMLResponse)
async def parking_map(request: Request, ctx: SessionContext = Depends(get_session_context)):
    """Employee map view. Management and admin hold assigned spots and go to cessions."""
    result = await require_auth(ctx)
    if isinstance(result, Denied):
        return _redirect(result.path)
    if classify_role(result.identity) in (Role.MANAGEMENT, Role.ADMIN):
        return _redirect(path_for(RouteIntent.PARKING_CESSATIONS))
    content = _placeholder("Mapa", "Vista del plano del parking con disponibilidad en tiempo real.")
    return _page(request, result.identity, "Mapa", content)


@app.get("/mis-reservas", response_class=HTMLResponse)
async def my_reservations(request: Request, ctx: SessionContext = Depends(get_session_context)):
    """Employees see reservations, management sees cessions, admin goes to the panel."""
    result = await require_auth(ctx)
    if isinstance(result, Denied):
        return _redirect(result.path)
    role = classify_role(result.identity)
    if role is Role.ADMIN:
        return _redirect(path_for(RouteIntent.DASHBOARD))
    if role is Role.MANAGEMENT:
        content = _placeholder("Mis Cesiones", "Días en los que has cedido o programado ceder tu plaza.")
        return _page(request, result.identity, "Mis Cesiones", content)
    content = _placeholder("Mis Reservas", "Tus próximas reservas de plaza confirmadas.")
    return _page(request, result.identity, "Mis Reservas", content)


@app.get("/calendar", response_class=HTMLResponse)
async def calendar(request: Request, ctx: SessionContext = Depends(get_session_context)):
    content = _placeholder("Calendario", "Vista semanal y mensual de disponibilidad.")
    return await _guarded_page(request, ctx, require_auth, "Calendario", content)


@app.get("/visitors", response_class=HTMLResponse)
async def visitors(request: Request, ctx: SessionContext = Depends(get_session_context)):
    content = _placeholder("Visitantes", "Gestión de reservas para visitantes externos.")
    return await _guarded_page(request, ctx, require_auth, "Visitantes", content)


@app.get("/admin", response_class=HTMLResponse)
async def admin_spots(request: Request, ctx: SessionContext = Depends(get_session_context)):
    content = _placeholder("Plazas", "Alta, baja y asignación de plazas de parking.")
    return await _guarded_page(request, ctx, require_admin, "Plazas", content)


@app.get("/admin/users", response_class=HTMLResponse)
async def admin_users(request: Request, ctx: SessionContext = Depends(get_session_context)):
    content = _placeholder("Usuarios", "Usuarios y roles de la organización.")
    return await _guarded_page(request, ctx, require_admin, "Usuarios", content)


SETTINGS_SECTIONS = {
    "": ("Información Personal", "Actualiza tu información de perfil."),
    "notifications": ("Notificaciones", "Elige cómo y cuándo recibir avisos."),
    "preferences": ("Preferencias", "Vista por defecto, idioma y plazas favoritas."),
    "microsoft": ("Microsoft 365", "Sincronización con Outlook y Teams."),
    "security": ("Seguridad", "Sesiones activas y acceso a la cuenta."),
}


async def _settings_page(request: Request, ctx: SessionContext, section: str) -> Response:
    result = await require_profile(ctx)
    if isinstance(result, Denied):
        return _redirect(result.path)
    if section not in SETTINGS_SECTIONS:
        raise HTTPException(status_code=404)
    heading, text = SETTINGS_SECTIONS[section]
    return _page(request, result.identity, f"Ajustes - {heading}", _placeholder(heading, text))


@app.get("/settings", response_class=HTMLResponse)
async def settings_profile(request: Request, ctx: SessionContext = Depends(get_session_context)):
    return await _settings_page(request, ctx, "")


@app.get("/settings/{section}", response_class=HTMLResponse)
async def settings_section(section: str, request: Request, ctx: SessionContext = Depends(get_session_context)):
    return await _settings_page(request, ctx, section)


def _register_deprecated_redirect(old_path: str, intent: RouteIntent) -> None:
    async def _deprecated_redirect():
        return _redirect(path_for(intent))

    app.add_api_route(old_path, _deprecated_redirect, methods=["GET"], include_in_schema=False)


for _old_path, _intent in DEPRECATED_PATHS.items():
    _register_deprecated_redirect(_old_path, _intent)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return JSONResponse({"status": "healthy"}, headers=PRIVATE_HEADERS)
