"""
API routers for endpoint organization.
"""
from .health import router as health_router
from .notifications import router as notifications_router
from .subscriptions import router as subscriptions_router
from .identity import router as identity_router

__all__ = [
    "health_router",
    "notifications_router",
    "subscriptions_router",
    "identity_router",
]
