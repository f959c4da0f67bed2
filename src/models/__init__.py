"""
Call Media Intercept API Models.

This module re-exports all model classes for convenient importing.
"""

# Credential models
from .credential import Credential

# Subscription models
from .subscription import Subscription, SubscriptionResponse

# Notification models
from .notification import (
    ResourceData,
    ChangeNotification,
    NotificationEnvelope,
)

# Call media models
from .call_media import (
    AUDIO_STREAM_TYPE,
    MediaStream,
    CallMediaDescriptor,
    Transcript,
)

__all__ = [
    # Credential
    "Credential",
    # Subscription
    "Subscription",
    "SubscriptionResponse",
    # Notification
    "ResourceData",
    "ChangeNotification",
    "NotificationEnvelope",
    # Call media
    "AUDIO_STREAM_TYPE",
    "MediaStream",
    "CallMediaDescriptor",
    "Transcript",
]
