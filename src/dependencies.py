"""
FastAPI dependency injection factories.

This module wires the call-intercept services together once per process
and exposes them to routers. Tests swap them out through
`app.dependency_overrides`.
"""
from typing import Optional

from src.services import (
    CallMediaService,
    CredentialService,
    GraphConfig,
    NotificationService,
    SpeechService,
    SubscriptionRegistry,
    SubscriptionService,
    TaskDispatcher,
)


_config: Optional[GraphConfig] = None
_credential_service: Optional[CredentialService] = None
_registry: Optional[SubscriptionRegistry] = None
_subscription_service: Optional[SubscriptionService] = None
_call_media_service: Optional[CallMediaService] = None
_notification_service: Optional[NotificationService] = None
_dispatcher: Optional[TaskDispatcher] = None


def get_config() -> GraphConfig:
    """Get the process-wide Graph configuration."""
    global _config
    if _config is None:
        _config = GraphConfig.from_env()
    return _config


def get_credential_service() -> CredentialService:
    """Get the credential service singleton (shares one token cache)."""
    global _credential_service
    if _credential_service is None:
        _credential_service = CredentialService(get_config())
    return _credential_service


def get_subscription_registry() -> SubscriptionRegistry:
    global _registry
    if _registry is None:
        _registry = SubscriptionRegistry()
    return _registry


def get_subscription_service() -> SubscriptionService:
    """Get the subscription service singleton."""
    global _subscription_service
    if _subscription_service is None:
        _subscription_service = SubscriptionService(
            get_credential_service(),
            registry=get_subscription_registry(),
            config=get_config(),
        )
    return _subscription_service


def get_call_media_service() -> CallMediaService:
    """Get the call media service singleton."""
    global _call_media_service
    if _call_media_service is None:
        _call_media_service = CallMediaService(
            get_credential_service(),
            SpeechService(get_config()),
            config=get_config(),
        )
    return _call_media_service


def get_notification_service() -> NotificationService:
    """Get the notification service singleton."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService(
            get_call_media_service(),
            get_subscription_registry(),
            config=get_config(),
        )
    return _notification_service


def get_dispatcher() -> TaskDispatcher:
    """Get the background task dispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = TaskDispatcher()
    return _dispatcher
