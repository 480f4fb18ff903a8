# API Routers
from .auth import router as auth_router
from .health import router as health_router
from .router import api_router

__all__ = ["api_router", "auth_router", "health_router"]
