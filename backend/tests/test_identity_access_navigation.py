"""
Sidebar navigation tests.

Requirements:
- Employees see Parking, Mis Reservas, Mapa; never admin entries
- Management sees Mis Cesiones instead of Mis Reservas and no Mapa
- Admin sees Panel and administration entries, not the parking views
- Every entry path comes from the route table
- Active entry is the longest matching prefix
"""
from __future__ import annotations

from backend.identity_access.domain import Role
from backend.identity_access.navigation import active_item, nav_items_for_role
from backend.identity_access.routes import ROUTE_TABLE


def _titles(role):
    return [item.title for item in nav_items_for_role(role)]


def test_employee_navigation():
    assert _titles(Role.EMPLOYEE) == ["Parking", "Mis Reservas", "Mapa", "Visitantes", "Ajustes"]


def test_management_navigation():
    assert _titles(Role.MANAGEMENT) == ["Parking", "Mis Cesiones", "Visitantes", "Ajustes"]


def test_admin_navigation():
    assert _titles(Role.ADMIN) == ["Panel", "Visitantes", "Plazas", "Usuarios", "Ajustes"]


def test_unset_role_sees_employee_navigation():
    assert _titles(None) == _titles(Role.EMPLOYEE)
    assert _titles("owner") == _titles(Role.EMPLOYEE)


def test_every_entry_path_is_in_route_table():
    known = set(ROUTE_TABLE.values())
    for role in Role:
        for item in nav_items_for_role(role):
            assert item.path in known


def test_active_item_prefers_longest_prefix():
    items = nav_items_for_role(Role.ADMIN)
    assert active_item(items, "/admin/users").title == "Usuarios"
    assert active_item(items, "/admin").title == "Plazas"
    assert active_item(items, "/settings/security").title == "Ajustes"
    assert active_item(items, "/administrator") is None
    assert active_item(items, "/unknown") is None
