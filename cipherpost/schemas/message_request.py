"""
Pydantic schemas for message request endpoints.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cipherpost.models.message_request import MessageRequestStatus
from cipherpost.schemas.common import SnowflakeId, UtcDatetime
from cipherpost.schemas.group import GroupResponse
from cipherpost.schemas.user import UserResponse


class MessageRequestCreate(BaseModel):
    """
    Schema for proposing contact.

    The destination is given either by id or by handle (email or phone number).
    """

    destination_id: Optional[SnowflakeId] = Field(None, description="Destination user id")
    handle: Optional[str] = Field(None, min_length=1, max_length=255, description="Destination email or phone number")

    @model_validator(mode="after")
    def validate_destination(self) -> "MessageRequestCreate":
        if (self.destination_id is None) == (self.handle is None):
            raise ValueError("Provide exactly one of destination_id or handle")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"handle": "bob@example.com"}
        }
    )


class MessageRequestResponse(BaseModel):
    """Schema for a message request."""

    id: SnowflakeId
    source_id: SnowflakeId
    destination_id: SnowflakeId
    status: MessageRequestStatus
    approved_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    source: Optional[UserResponse] = None
    destination: Optional[UserResponse] = None

    model_config = ConfigDict(from_attributes=True)


class MessageRequestApproveResponse(BaseModel):
    """Approved request together with the group it created."""

    request: MessageRequestResponse
    group: GroupResponse
