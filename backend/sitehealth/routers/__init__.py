"""API routers."""
from .cron import router as cron_router
from .health import router as health_router
from .sites import router as sites_router

__all__ = ["cron_router", "health_router", "sites_router"]
