"""
Role-based sidebar navigation.

Each entry declares the roles that may see it; an entry without roles is
visible to everyone. Paths always come from the route table so the sidebar
cannot link to a destination the guards do not know.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from .domain import DEFAULT_ROLE, Role, parse_role
from .routes import RouteIntent, path_for


@dataclass(frozen=True)
class NavItem:
    title: str
    intent: RouteIntent
    group: str
    roles: Optional[FrozenSet[Role]] = None

    @property
    def path(self) -> str:
        return path_for(self.intent)

    def visible_to(self, role: Role) -> bool:
        return self.roles is None or role in self.roles


_ALL_ITEMS: Tuple[NavItem, ...] = (
    NavItem("Panel", RouteIntent.DASHBOARD, "General", frozenset({Role.ADMIN})),
    NavItem("Parking", RouteIntent.PARKING, "General", frozenset({Role.EMPLOYEE, Role.MANAGEMENT})),
    NavItem("Mis Reservas", RouteIntent.MY_RESERVATIONS, "General", frozenset({Role.EMPLOYEE})),
    NavItem("Mis Cesiones", RouteIntent.MY_RESERVATIONS, "General", frozenset({Role.MANAGEMENT})),
    NavItem("Mapa", RouteIntent.PARKING_MAP, "General", frozenset({Role.EMPLOYEE})),
    NavItem("Visitantes", RouteIntent.VISITORS, "General"),
    NavItem("Plazas", RouteIntent.ADMIN, "Administración", frozenset({Role.ADMIN})),
    NavItem("Usuarios", RouteIntent.ADMIN_USERS, "Administración", frozenset({Role.ADMIN})),
    NavItem("Ajustes", RouteIntent.SETTINGS, "Administración"),
)


def nav_items_for_role(role) -> List[NavItem]:
    """Return the ordered sidebar entries visible to `role` (unset -> employee)."""
    parsed = parse_role(role) or DEFAULT_ROLE
    return [item for item in _ALL_ITEMS if item.visible_to(parsed)]


def active_item(items: List[NavItem], current_path: str) -> Optional[NavItem]:
    """Best-prefix match of the current path against the visible entries."""
    best: Optional[NavItem] = None
    for item in items:
        p = item.path
        if current_path == p or current_path.startswith(p.rstrip("/") + "/"):
            if best is None or len(p) > len(best.path):
                best = item
    return best


__all__ = ["NavItem", "active_item", "nav_items_for_role"]
