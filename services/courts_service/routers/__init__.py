"""Routers package."""

from services.courts_service.routers.admin import router as admin_router
from services.courts_service.routers.auth import accounts_router
from services.courts_service.routers.auth import router as auth_router
from services.courts_service.routers.courts import router as courts_router
from services.courts_service.routers.reservations import router as reservations_router

__all__ = [
    "accounts_router",
    "admin_router",
    "auth_router",
    "courts_router",
    "reservations_router",
]
