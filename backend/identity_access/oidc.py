"""
Minimal OAuth (PKCE) client for Supabase Auth with the Entra ID provider.

Why: Keep web framework independent auth logic in a separate module. The web
adapter (FastAPI) calls into this client to build the authorization URL and
exchange the authorization code for a Supabase session.

Security: Uses PKCE (S256) parameters; the caller is responsible for state and
code_verifier storage (see stores.StateStore). Supabase talks to Entra ID; this
client only ever talks to Supabase.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import hashlib
import base64
import os
from urllib.parse import urlencode

# Small indirection to ease monkeypatching in tests
import requests as http

HTTP_TIMEOUT_SECONDS = 5


def http_post(url: str, json_body: Dict[str, str], headers: Dict[str, str]):
    return http.post(url, json=json_body, headers=headers, timeout=HTTP_TIMEOUT_SECONDS)


class TokenExchangeError(Exception):
    """Raised when Supabase refuses or fails the code exchange."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class OAuthConfig:
    supabase_url: str  # e.g., https://xyz.supabase.co
    anon_key: str
    redirect_uri: str  # e.g., https://parking.example.com/auth/callback
    provider: str = "azure"
    scopes: str = "email"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/auth/v1/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/auth/v1/token?grant_type=pkce"

    @property
    def refresh_endpoint(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/auth/v1/token?grant_type=refresh_token"


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    expires_in: int


class OAuthClient:
    def __init__(self, config: OAuthConfig):
        self.cfg = config

    @staticmethod
    def generate_code_verifier(length: int = 64) -> str:
        """Generate a high-entropy URL-safe code_verifier.

        Note: RFC 7636 requires between 43 and 128 characters.
        """
        return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii").rstrip("=")

    @staticmethod
    def code_challenge_s256(code_verifier: str) -> str:
        """Derive S256 code challenge from verifier."""
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def build_authorization_url(self, *, state: str, code_challenge: str) -> str:
        """Return the Supabase authorize URL for the configured provider.

        The opaque `state` travels back inside `redirect_to`, since Supabase
        keeps its own provider-level state.
        """
        redirect_to = f"{self.cfg.redirect_uri}?{urlencode({'state': state})}"
        params = {
            "provider": self.cfg.provider,
            "redirect_to": redirect_to,
            "scopes": self.cfg.scopes,
            "code_challenge": code_challenge,
            "code_challenge_method": "s256",
        }
        return f"{self.cfg.authorize_endpoint}?{urlencode(params)}"

    def _headers(self) -> Dict[str, str]:
        return {"apikey": self.cfg.anon_key, "Content-Type": "application/json"}

    @staticmethod
    def _session_from_response(resp: Any, failure_code: str) -> SessionTokens:
        if resp.status_code != 200:
            raise TokenExchangeError(failure_code)
        try:
            payload: Any = resp.json()
        except ValueError as exc:
            raise TokenExchangeError("token_response_invalid") from exc
        access_token: Optional[str] = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise TokenExchangeError("token_response_invalid")
        try:
            expires_in = int(payload.get("expires_in") or 3600)
        except (TypeError, ValueError):
            expires_in = 3600
        return SessionTokens(
            access_token=access_token,
            refresh_token=str(payload.get("refresh_token") or ""),
            expires_in=expires_in,
        )

    def exchange_code_for_session(self, *, code: str, code_verifier: str) -> SessionTokens:
        """Exchange the auth code for a Supabase session.

        Raises TokenExchangeError on non-200 responses or malformed payloads.
        Transport errors from `requests` propagate unchanged.
        """
        body = {"auth_code": code, "code_verifier": code_verifier}
        resp = http_post(self.cfg.token_endpoint, json_body=body, headers=self._headers())
        return self._session_from_response(resp, "token_exchange_failed")

    def refresh_session(self, *, refresh_token: str) -> SessionTokens:
        """Trade a refresh token for a new access/refresh token pair.

        Supabase rotates refresh tokens; callers must store the returned one.
        """
        body = {"refresh_token": refresh_token}
        resp = http_post(self.cfg.refresh_endpoint, json_body=body, headers=self._headers())
        return self._session_from_response(resp, "token_refresh_failed")
