"""
Shared web security helpers for state-changing routes.

Contains the CSRF same-origin check used by logout and the admin write
endpoints, so every POST handler applies the same rule.
"""
from __future__ import annotations

from urllib.parse import urlparse
import os

from fastapi import Request
from fastapi.responses import JSONResponse

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _origin_of(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), p.port or _DEFAULT_PORTS.get(scheme, 80)


def _server_origin(request: Request) -> tuple[str, str, int]:
    # Only trust X-Forwarded-* behind a known reverse proxy.
    trust_proxy = (os.getenv("PARKING_TRUST_PROXY", "false") or "").strip().lower() == "true"
    if trust_proxy:
        proto = (request.headers.get("x-forwarded-proto") or request.url.scheme or "http").split(",")[0].strip()
        host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
        if host:
            return _origin_of(f"{proto}://{host}")
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    return scheme, host, request.url.port or _DEFAULT_PORTS.get(scheme, 80)


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    - Unparseable values (e.g. `Origin: null`) are rejected.
    """
    claimed = request.headers.get("origin") or request.headers.get("referer")
    if not claimed:
        return True
    try:
        return _origin_of(claimed) == _server_origin(request)
    except ValueError:
        return False


def csrf_forbidden() -> JSONResponse:
    return JSONResponse(
        {"error": "forbidden", "detail": "csrf_violation"},
        status_code=403,
        headers={"Cache-Control": "private, no-store"},
    )
