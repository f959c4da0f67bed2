"""
Notification processing for the Graph change notification webhook.

Runs after the webhook has already answered 202: parses the body, checks
that it comes from one of our subscriptions, and passes the call id on to
the call media service.
"""
import hmac
import json
import logging
from typing import Optional

from pydantic import ValidationError

from src.config import MAX_CLIENT_STATE_LENGTH
from src.exceptions import ClientStateMismatch, MalformedNotification
from src.models import ChangeNotification, NotificationEnvelope
from src.services.call_media_service import CallMediaService
from src.services.graph_config import GraphConfig
from src.services.subscription_service import SubscriptionRegistry

logger = logging.getLogger(__name__)


def parse_notification(body: bytes) -> ChangeNotification:
    """
    Parse a notification body and return its first item.

    Raises:
        MalformedNotification: invalid JSON, no `value` list, or an empty one
    """
    try:
        data = json.loads(body or b"")
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedNotification(f"Notification body is not valid JSON: {e}")

    if not isinstance(data, dict) or "value" not in data:
        raise MalformedNotification("Notification body has no 'value' field")

    try:
        envelope = NotificationEnvelope.model_validate(data)
    except ValidationError as e:
        raise MalformedNotification(f"Notification body does not match the expected shape: {e}")

    if not envelope.value:
        raise MalformedNotification("Notification 'value' is empty")

    return envelope.value[0]


class NotificationService:
    """Validates content notifications and dispatches call ids."""

    def __init__(
        self,
        call_media_service: CallMediaService,
        registry: SubscriptionRegistry,
        config: Optional[GraphConfig] = None,
    ):
        self.call_media_service = call_media_service
        self.registry = registry
        self.config = config or call_media_service.config

    def _expected_client_state(self, notification: ChangeNotification) -> str:
        subscription = self.registry.get(notification.subscription_id)
        if subscription is not None:
            if subscription.is_expired():
                raise ClientStateMismatch(notification.subscription_id, "subscription expired")
            return subscription.client_state

        # Subscriptions created by another process or before a restart
        if self.config.client_state:
            return self.config.client_state[:MAX_CLIENT_STATE_LENGTH]

        raise ClientStateMismatch(notification.subscription_id, "unknown subscription")

    def verify_client_state(self, notification: ChangeNotification) -> None:
        """
        Check the notification's clientState against the subscription's secret.

        Raises ClientStateMismatch when REQUIRE_CLIENT_STATE is on; otherwise
        the mismatch is only logged.
        """
        try:
            expected = self._expected_client_state(notification)
            received = notification.client_state or ""
            if not hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8")):
                raise ClientStateMismatch(notification.subscription_id)
        except ClientStateMismatch as e:
            if self.config.require_client_state:
                raise
            logger.warning(f"{e.message} (verification not required, continuing)")

    async def process(self, body: bytes) -> Optional[str]:
        """
        Handle a content notification body. Returns the dispatched call id.

        Malformed or untrusted notifications are logged and dropped.
        """
        try:
            notification = parse_notification(body)
            self.verify_client_state(notification)
        except MalformedNotification as e:
            logger.warning(f"Dropping notification: {e.message}")
            return None

        call_id = notification.call_id
        if not call_id:
            logger.info("Notification has no resourceData.id, nothing to fetch")
            return None

        logger.info(f"Call ID: {call_id} (changeType={notification.change_type})")
        await self.call_media_service.intercept_call_media(call_id)
        return call_id
