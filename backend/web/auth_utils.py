"""
Shared authentication utilities.

Why:
    Avoid duplicating environment-dependent cookie policy logic across modules
    (main app and auth router).

Design:
    The helper is framework-agnostic and pure: it accepts an environment string
    and returns the corresponding cookie flags. Callers decide where the
    environment comes from.
"""

from __future__ import annotations


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"  # Top-level OAuth redirect back from Supabase must carry the cookie
    """
    return {"secure": True, "samesite": "lax"}
