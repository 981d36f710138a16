"""
Layout component for the parking portal.

Wraps page content in a minimal HTML document with the role-based sidebar.
Styling and client-side behaviour live outside this repository; the markup
only carries stable hooks (ids, classes, aria attributes).
"""

from __future__ import annotations

from html import escape
from typing import Optional

from backend.identity_access.domain import Identity, classify_role
from backend.identity_access.navigation import active_item, nav_items_for_role
from backend.identity_access.routes import RouteIntent, path_for

APP_NAME = "GRUPOSIETE Parking"


class Layout:
    """Main layout component that assembles the complete page."""

    def __init__(self, title: str, content: str, identity: Optional[Identity] = None, current_path: str = "/"):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered, trusted)
            identity: Current identity; None renders the public chrome
            current_path: Current URL path for active navigation highlighting
        """
        self.title = title
        self.content = content
        self.identity = identity
        self.current_path = current_path

    def render(self) -> str:
        return f"""<!DOCTYPE html>
<html lang="es">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape(self.title)} - {APP_NAME}</title>
</head>
<body>
    {self._render_sidebar()}
    <main id="main-content" class="main-content" role="main">
        {self.content}
    </main>
</body>
</html>"""

    def _render_sidebar(self) -> str:
        if self.identity is None:
            return ""
        items = nav_items_for_role(classify_role(self.identity))
        current = active_item(items, self.current_path)
        links = []
        for item in items:
            active = item is current
            aria = ' aria-current="page"' if active else ""
            css = "sidebar-link active" if active else "sidebar-link"
            links.append(
                f'<a href="{escape(item.path)}" class="{css}"{aria}><span class="nav-text">{escape(item.title)}</span></a>'
            )
        logout = (
            f'<form method="post" action="{path_for(RouteIntent.LOGOUT)}">'
            '<button type="submit" class="sidebar-link">Cerrar sesión</button></form>'
        )
        return f"""<aside class="sidebar" id="sidebar" aria-label="Barra lateral">
        <nav class="sidebar-nav" role="navigation" aria-label="Navegación principal">
            {''.join(links)}
            {logout}
        </nav>
        <div class="user-name">{escape(self.identity.display_name)}</div>
    </aside>"""
