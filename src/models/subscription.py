"""
Change notification subscription models.
"""
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


class Subscription(BaseModel):
    """A subscription registered with the resource provider."""
    id: str
    resource: str
    change_type: str
    notification_url: str
    expires_at: datetime
    client_state: str = Field(..., repr=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


class SubscriptionResponse(BaseModel):
    """Subscription as exposed by the operator endpoints (no client state)."""
    id: str
    resource: str
    change_type: str
    notification_url: str
    expires_at: datetime
    created_at: datetime
    expired: bool

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            resource=subscription.resource,
            change_type=subscription.change_type,
            notification_url=subscription.notification_url,
            expires_at=subscription.expires_at,
            created_at=subscription.created_at,
            expired=subscription.is_expired(),
        )
