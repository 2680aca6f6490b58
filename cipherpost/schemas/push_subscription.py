"""
Pydantic schemas for push subscription endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field

from cipherpost.schemas.common import SnowflakeId, UtcDatetime


class PushSubscriptionCreate(BaseModel):
    """Schema for registering a device endpoint."""

    endpoint: str = Field(..., min_length=1, description="Push service endpoint URL")
    p256dh: str = Field(..., min_length=1, max_length=255, description="Client public key")
    auth: str = Field(..., min_length=1, max_length=255, description="Client auth secret")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "endpoint": "https://fcm.googleapis.com/fcm/send/abc123",
                "p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
                "auth": "tBHItJI5svbpez7KI4CCXg"
            }
        }
    )


class PushSubscriptionResponse(BaseModel):
    """A registered subscription. Keys are never echoed back."""

    id: SnowflakeId
    endpoint: str
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)
