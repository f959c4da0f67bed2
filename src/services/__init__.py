"""
Service layer for business logic.
"""
from .graph_config import GraphConfig
from .credential_service import CredentialService
from .subscription_service import SubscriptionService, SubscriptionRegistry
from .speech_service import SpeechService
from .call_media_service import CallMediaService
from .notification_service import NotificationService, parse_notification
from .task_dispatcher import TaskDispatcher

__all__ = [
    "GraphConfig",
    "CredentialService",
    "SubscriptionService",
    "SubscriptionRegistry",
    "SpeechService",
    "CallMediaService",
    "NotificationService",
    "parse_notification",
    "TaskDispatcher",
]
