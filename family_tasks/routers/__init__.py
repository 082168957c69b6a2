"""Routers package for the household task API."""

from .notifications import router as notifications_router
from .tasks import router as tasks_router
from .users import router as users_router

__all__ = ["notifications_router", "tasks_router", "users_router"]
