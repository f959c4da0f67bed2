"""
Operator endpoints for change notification subscriptions.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from src.dependencies import get_subscription_service
from src.exceptions import CallInterceptException
from src.models import SubscriptionResponse
from src.services import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Subscriptions"])


@router.get("/create-subscription", response_class=PlainTextResponse)
async def create_subscription(
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Create a call records subscription pointing at NOTIFICATION_URL.

    Each call creates a new subscription. Failures are reported as 500 with
    the reason in the body.
    """
    try:
        subscription_id = await subscription_service.create_subscription()
    except CallInterceptException as e:
        logger.error(f"Error creating subscription: {e.message}")
        return PlainTextResponse(f"Error creating subscription: {e.message}", status_code=500)

    logger.info(f"Subscription created: {subscription_id}")
    return PlainTextResponse(f"Subscription created with ID: {subscription_id}", status_code=200)


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
async def list_subscriptions(
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """List subscriptions created by this process (client state is never exposed)."""
    return [
        SubscriptionResponse.from_subscription(subscription)
        for subscription in subscription_service.list_subscriptions()
    ]


@router.get("/subscriptions/current", response_model=SubscriptionResponse)
async def current_subscription(
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """The most recently created subscription."""
    subscription = subscription_service.current_subscription()
    if subscription is None:
        raise HTTPException(status_code=404, detail="No subscription has been created")
    return SubscriptionResponse.from_subscription(subscription)


@router.get("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: str,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """A subscription created by this process, by id."""
    subscription = subscription_service.get_subscription(subscription_id)
    if subscription is None:
        raise HTTPException(status_code=404, detail=f"Subscription not found: {subscription_id}")
    return SubscriptionResponse.from_subscription(subscription)
