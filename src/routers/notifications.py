"""
Graph change notification webhook.

Handles:
- Subscription validation handshake (echo of validationToken)
- Content notifications (acknowledged with 202, processed in the background)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import PlainTextResponse

from src.dependencies import get_dispatcher, get_notification_service
from src.services import NotificationService, TaskDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])


@router.post("/api/notifications")
async def receive_notification(
    request: Request,
    validation_token: Optional[str] = Query(None, alias="validationToken"),
    notification_service: NotificationService = Depends(get_notification_service),
    dispatcher: TaskDispatcher = Depends(get_dispatcher),
):
    """
    Webhook endpoint registered as the subscription's notificationUrl.

    With a `validationToken` query parameter this is Graph confirming the
    endpoint: the token is echoed back verbatim as text/plain. Otherwise the
    body is a content notification; we answer 202 straight away and leave
    parsing and the call media lookup to a background task, whose outcome
    never reaches this response.
    """
    if validation_token is not None:
        logger.info("Validation request received")
        return PlainTextResponse(content=validation_token, status_code=200)

    body = await request.body()
    logger.info(f"Notification received ({len(body)} bytes)")

    dispatcher.submit(notification_service.process(body), name="process-notification")
    return Response(status_code=202)
