"""API route modules."""
from api.routes.system import router as system_router
from api.routes.mysql import router as mysql_router

__all__ = [
    "system_router",
    "mysql_router",
]
