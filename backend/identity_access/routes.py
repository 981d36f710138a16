"""
Route table: symbolic destinations bound to canonical paths.

Every redirect issued by guards, the root redirector and the auth endpoints
goes through this table. Bindings are fixed at import time and unique, so a
guard's denial target can never alias the page it protects.
"""

from __future__ import annotations

from enum import Enum, unique
from types import MappingProxyType
from typing import Any, Mapping

from .domain import Role, parse_role, DEFAULT_ROLE


@unique
class RouteIntent(Enum):
    HOME = "/"
    LOGIN = "/login"
    CALLBACK = "/auth/callback"
    LOGOUT = "/auth/logout"
    DASHBOARD = "/dashboard"
    PARKING = "/parking"
    PARKING_CESSATIONS = "/parking/cessations"
    PARKING_MAP = "/parking/map"
    MY_RESERVATIONS = "/mis-reservas"
    CALENDAR = "/calendar"
    VISITORS = "/visitors"
    ADMIN = "/admin"
    ADMIN_USERS = "/admin/users"
    SETTINGS = "/settings"
    SETTINGS_NOTIFICATIONS = "/settings/notifications"
    SETTINGS_PREFERENCES = "/settings/preferences"
    SETTINGS_MICROSOFT = "/settings/microsoft"
    SETTINGS_SECURITY = "/settings/security"

    @property
    def path(self) -> str:
        return self.value


ROUTE_TABLE: Mapping[RouteIntent, str] = MappingProxyType({intent: intent.value for intent in RouteIntent})

# Old Spanish paths kept alive as permanent aliases of the parking view.
DEPRECATED_PATHS: Mapping[str, RouteIntent] = MappingProxyType(
    {
        "/calendario": RouteIntent.PARKING,
        "/inicio": RouteIntent.PARKING,
    }
)

_HOME_BY_ROLE: Mapping[Role, RouteIntent] = MappingProxyType(
    {
        Role.ADMIN: RouteIntent.DASHBOARD,
        Role.MANAGEMENT: RouteIntent.PARKING,
        Role.EMPLOYEE: RouteIntent.PARKING,
    }
)


def path_for(intent: RouteIntent) -> str:
    return ROUTE_TABLE[intent]


def home_route_for_role(role: Any) -> RouteIntent:
    """Return the landing route for a role.

    Accepts a Role, a raw role string, or None. Unset and unknown values land
    on the employee home.
    """
    parsed = parse_role(role) or DEFAULT_ROLE
    return _HOME_BY_ROLE[parsed]


__all__ = [
    "DEPRECATED_PATHS",
    "ROUTE_TABLE",
    "RouteIntent",
    "home_route_for_role",
    "path_for",
]
