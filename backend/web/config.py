"""
Configuration and startup security checks for the parking portal.

Why: A corporate deployment must not start with placeholder secrets or
plain-http auth endpoints. This module reads the environment in one place and
provides a single guard that enforces minimal production safety constraints
without burdening local development.

Permissions: The caller needs no special privileges. Functions only read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


DEFAULT_REDIRECT_URI = "https://app.localhost/auth/callback"
DEFAULT_SESSION_TTL_SECONDS = 3600


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("PARKING_ENV", "dev") or "dev").strip().lower()


def supabase_url() -> str:
    return (os.getenv("SUPABASE_URL") or "").strip()


def supabase_anon_key() -> str:
    return (os.getenv("SUPABASE_ANON_KEY") or "").strip()


def supabase_service_role_key() -> str:
    return (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()


def oauth_provider() -> str:
    """Supabase provider id for Microsoft Entra ID (default `azure`)."""
    return (os.getenv("OAUTH_PROVIDER") or "azure").strip()


def oauth_scopes() -> str:
    return (os.getenv("OAUTH_SCOPES") or "email").strip()


def redirect_uri() -> str:
    return (os.getenv("REDIRECT_URI") or DEFAULT_REDIRECT_URI).strip()


def session_ttl_seconds() -> int:
    raw = (os.getenv("SESSION_TTL_SECONDS") or "").strip()
    if not raw:
        return DEFAULT_SESSION_TTL_SECONDS
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_SESSION_TTL_SECONDS
    return value if value > 0 else DEFAULT_SESSION_TTL_SECONDS


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - Supabase service role key must be set and not a known dummy placeholder.
    - Supabase anon key must be set (needed for the OAuth code exchange).
    - SUPABASE_URL and REDIRECT_URI must use https.
    """
    env = current_environment()
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    srole = supabase_service_role_key()
    if not srole or srole.upper() == "DUMMY_DO_NOT_USE":
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    if not supabase_anon_key():
        raise SystemExit("Refusing to start: SUPABASE_ANON_KEY is unset in production.")

    def _must_be_https(url_value: str, var_name: str) -> None:
        val = (url_value or "").strip().lower()
        if not val.startswith("https://"):
            raise SystemExit(
                f"Refusing to start: {var_name} must use https in production."
            )

    _must_be_https(supabase_url(), "SUPABASE_URL")
    _must_be_https(redirect_uri(), "REDIRECT_URI")
