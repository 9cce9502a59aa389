from __future__ import annotations

from authguard.api.routes.admin import router as admin_router
from authguard.api.routes.health import router as health_router
from authguard.api.routes.login import router as login_router

__all__ = ["admin_router", "health_router", "login_router"]
