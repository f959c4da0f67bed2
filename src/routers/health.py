"""
Health check router.
"""
from fastapi import APIRouter, Depends

from src.dependencies import get_dispatcher, get_subscription_service
from src.services import SubscriptionService, TaskDispatcher

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Liveness check."""
    return {"status": "ok", "service": "call-media-intercept"}


@router.get("/health/details")
async def health_details(
    subscription_service: SubscriptionService = Depends(get_subscription_service),
    dispatcher: TaskDispatcher = Depends(get_dispatcher),
):
    """Background work and subscription status, useful when debugging missed notifications."""
    current = subscription_service.current_subscription()
    return {
        "pending_tasks": dispatcher.pending,
        "subscriptions": len(subscription_service.list_subscriptions()),
        "current_subscription_id": current.id if current else None,
        "current_subscription_expired": current.is_expired() if current else None,
    }
