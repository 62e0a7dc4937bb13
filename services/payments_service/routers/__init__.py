"""Routers package."""

from services.payments_service.routers.admin import router as admin_router
from services.payments_service.routers.intents import router as intents_router

__all__ = [
    "admin_router",
    "intents_router",
]
