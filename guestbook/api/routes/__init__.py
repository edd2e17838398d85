from __future__ import annotations

from guestbook.api.routes.admin import build_admin_router
from guestbook.api.routes.health import router as health_router
from guestbook.api.routes.visitors import router as visitors_router

__all__ = ["build_admin_router", "health_router", "visitors_router"]
