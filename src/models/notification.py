"""
Change notification payload models.

Graph posts `{"value": [ {subscriptionId, clientState, changeType, resource,
resourceData: {id, ...}} ]}` to the notification URL. Only the fields this
service acts on are declared; everything else is kept as extra data.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ResourceData(BaseModel):
    """Identifies the changed resource (for callRecords, the call id)."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    odata_type: Optional[str] = Field(None, alias="@odata.type")


class ChangeNotification(BaseModel):
    """One item of a notification's `value` sequence."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    subscription_id: Optional[str] = Field(None, alias="subscriptionId")
    client_state: Optional[str] = Field(None, alias="clientState")
    change_type: Optional[str] = Field(None, alias="changeType")
    resource: Optional[str] = None
    tenant_id: Optional[str] = Field(None, alias="tenantId")
    subscription_expiration: Optional[str] = Field(None, alias="subscriptionExpirationDateTime")
    resource_data: Optional[ResourceData] = Field(None, alias="resourceData")

    @property
    def call_id(self) -> Optional[str]:
        if self.resource_data and self.resource_data.id:
            return self.resource_data.id
        return None


class NotificationEnvelope(BaseModel):
    """Body of a content notification."""
    model_config = ConfigDict(extra="allow")

    value: list[ChangeNotification]
