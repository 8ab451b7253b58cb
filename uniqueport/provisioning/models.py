"""Wire models for the provisioning webhook.

Field names follow the JSON sent by the provisioning system, hence the
PascalCase attributes.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from uniqueport.constants import ProvisioningStatus


class SNSMessage(BaseModel):
    MessageId: str = ""
    Type: str = ""
    TopicArn: str = ""
    Subject: str | None = None
    Message: str
    Timestamp: datetime | None = None


class SNSRecord(BaseModel):
    EventSource: str = ""
    EventVersion: str = ""
    EventSubscriptionArn: str = ""
    Sns: SNSMessage


class SNSEnvelope(BaseModel):
    Records: list[SNSRecord] = Field(default_factory=list)


class ProvisioningRequest(BaseModel):
    ResourceType: str = ""
    RequestType: str = ""
    RequestId: str = ""
    StackId: str = ""
    LogicalResourceId: str = ""
    PhysicalResourceId: str = ""
    ResponseURL: str = ""
    ResourceProperties: dict[str, Any] = Field(default_factory=dict)


class ProvisioningResponse(BaseModel):
    RequestId: str
    StackId: str
    LogicalResourceId: str
    PhysicalResourceId: str
    Status: ProvisioningStatus = ProvisioningStatus.SUCCESS
    Reason: str | None = None
    Data: dict[str, str] | None = None


class UniquePortProperties(BaseModel):
    DynamoRegion: str = ""
    DynamoEndpoint: str = ""
    DynamoLockTable: str = ""
    DynamoTable: str = ""
    Key: str = ""

    def first_missing(self) -> str | None:
        """Name of the first required property left empty, if any."""
        for name in ("DynamoRegion", "DynamoEndpoint", "DynamoLockTable", "DynamoTable", "Key"):
            if not getattr(self, name):
                return name
        return None
