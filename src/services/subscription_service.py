"""
Subscription Manager.

Creates Microsoft Graph change notification subscriptions for call records
and keeps track of the ones created by this process. Subscriptions are not
renewed; an operator creates a new one before the previous one expires.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx

from src.config import (
    MAX_CLIENT_STATE_LENGTH,
    MAX_SUBSCRIPTION_EXPIRATION_HOURS,
    SUBSCRIPTION_CHANGE_TYPE,
    SUBSCRIPTION_RESOURCE,
)
from src.exceptions import ConfigurationError, SubscriptionError, UpstreamTimeoutError
from src.models import Subscription
from src.services.credential_service import CredentialService
from src.services.graph_config import GraphConfig

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """In-process record of the subscriptions this service created."""

    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}
        self._latest_id: Optional[str] = None

    def add(self, subscription: Subscription) -> None:
        self._subscriptions[subscription.id] = subscription
        self._latest_id = subscription.id

    def get(self, subscription_id: Optional[str]) -> Optional[Subscription]:
        if not subscription_id:
            return None
        return self._subscriptions.get(subscription_id)

    def latest(self) -> Optional[Subscription]:
        return self.get(self._latest_id)

    def all(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    def __len__(self) -> int:
        return len(self._subscriptions)


def format_graph_datetime(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-01-01T12:00:00.000Z."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _text(data: dict, key: str, default: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) and value else default


def parse_graph_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse Graph's ISO-8601 timestamps (7-digit fractions and a trailing Z included)."""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat accepts at most 6 fractional digits on older interpreters
    if "." in text:
        head, rest = text.split(".", 1)
        digits = ""
        while rest and rest[0].isdigit():
            digits, rest = digits + rest[0], rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable timestamp from Graph: {value}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SubscriptionService:
    """Creates and tracks change notification subscriptions."""

    def __init__(
        self,
        credential_service: CredentialService,
        registry: Optional[SubscriptionRegistry] = None,
        config: Optional[GraphConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credential_service = credential_service
        self.registry = registry if registry is not None else SubscriptionRegistry()
        self.config = config or credential_service.config
        self._transport = transport

    @property
    def expiration_window(self) -> timedelta:
        hours = min(max(self.config.subscription_expiration_hours, 1), MAX_SUBSCRIPTION_EXPIRATION_HOURS)
        return timedelta(hours=hours)

    def _client_state(self) -> str:
        if self.config.client_state:
            return self.config.client_state[:MAX_CLIENT_STATE_LENGTH]
        return secrets.token_urlsafe(32)

    def build_payload(self, notification_url: str, client_state: str, now: Optional[datetime] = None) -> dict:
        """Subscription request body for the call records resource."""
        now = now or datetime.now(timezone.utc)
        return {
            "changeType": SUBSCRIPTION_CHANGE_TYPE,
            "notificationUrl": notification_url,
            "resource": SUBSCRIPTION_RESOURCE,
            "expirationDateTime": format_graph_datetime(now + self.expiration_window),
            "clientState": client_state,
        }

    async def create_subscription(self, notification_url: Optional[str] = None) -> str:
        """
        Create a new subscription and return its id.

        Every call creates an independent subscription; nothing is deduplicated.

        Raises:
            ConfigurationError: no notification URL is configured
            CredentialError: no token could be acquired
            SubscriptionError: Graph rejected the request
            UpstreamTimeoutError: Graph did not answer in time
        """
        notification_url = notification_url or self.config.notification_url
        if not notification_url:
            raise ConfigurationError("NOTIFICATION_URL")

        credential = await self.credential_service.acquire_token(self.config.scope)

        client_state = self._client_state()
        requested_at = datetime.now(timezone.utc)
        payload = self.build_payload(notification_url, client_state, now=requested_at)
        url = f"{self.config.graph_url}/subscriptions"

        logger.info(f"Creating subscription for {SUBSCRIPTION_RESOURCE} -> {notification_url}")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.config.http_timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={
                        **credential.authorization_header(),
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException:
            logger.error(f"Timed out creating subscription at {url}")
            raise UpstreamTimeoutError("subscriptions endpoint", self.config.http_timeout)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach subscriptions endpoint: {e}")
            raise SubscriptionError(f"Failed to create subscription: {e}")

        if not response.is_success:
            if response.status_code == 401:
                # Token rejected upstream; the next call fetches a fresh one
                self.credential_service.invalidate(self.config.scope)
            logger.error(f"Failed to create subscription: {response.status_code} {response.reason_phrase}")
            logger.error(f"Response Body: {response.text}")
            raise SubscriptionError(
                f"Failed to create subscription: {response.reason_phrase or response.status_code}",
                upstream_status=response.status_code,
                upstream_reason=response.reason_phrase,
                upstream_body=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            raise SubscriptionError(
                "Failed to create subscription: response body is not JSON",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        subscription_id = data.get("id") if isinstance(data, dict) else None
        if not subscription_id or not isinstance(subscription_id, str):
            raise SubscriptionError(
                "Failed to create subscription: response has no id",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        expires_at = (
            parse_graph_datetime(data.get("expirationDateTime"))
            or requested_at + self.expiration_window
        )
        self.registry.add(
            Subscription(
                id=subscription_id,
                resource=_text(data, "resource", SUBSCRIPTION_RESOURCE),
                change_type=_text(data, "changeType", SUBSCRIPTION_CHANGE_TYPE),
                notification_url=_text(data, "notificationUrl", notification_url),
                expires_at=expires_at,
                client_state=client_state,
            )
        )

        logger.info(f"Subscription created: {subscription_id} (expires {expires_at.isoformat()})")
        return subscription_id

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        return self.registry.get(subscription_id)

    def list_subscriptions(self) -> List[Subscription]:
        return self.registry.all()

    def current_subscription(self) -> Optional[Subscription]:
        """The most recently created subscription, if any."""
        return self.registry.latest()
