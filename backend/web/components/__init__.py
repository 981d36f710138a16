"""HTML components for the parking portal web adapter."""

from .layout import Layout

__all__ = ["Layout"]
