from routes.auth import router as auth_router
from routes.health import router as health_router
from routes.oauth import router as oauth_router
from routes.public import router as public_router
from routes.scheduling import router as scheduling_router

__all__ = ["auth_router", "health_router", "oauth_router", "public_router", "scheduling_router"]
