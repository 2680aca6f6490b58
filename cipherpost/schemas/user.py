"""
Pydantic schemas for user requests and responses.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cipherpost.schemas.common import SnowflakeId, UtcDatetime


# ============================================================================
# Request Schemas
# ============================================================================

class UserEnroll(BaseModel):
    """Schema for enrolling the authenticated identity."""

    public_key: str = Field(..., min_length=1, description="Public key peers encrypt content with")
    display_name: Optional[str] = Field(None, max_length=255, description="Optional display name")

    @field_validator("public_key")
    @classmethod
    def validate_public_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Public key cannot be empty or whitespace only")
        return v.strip()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "public_key": "-----BEGIN PUBLIC KEY-----\nMFkwEwYHKoZIzj0CAQYIKoZIzj0DAQcDQgAE...\n-----END PUBLIC KEY-----",
                "display_name": "Ada"
            }
        }
    )


class UserUpdate(BaseModel):
    """Schema for updating the current user's profile."""

    display_name: Optional[str] = Field(None, max_length=255, description="Display name (null or empty clears it)")


class PublicKeyUpdate(BaseModel):
    """Schema for rotating the current user's public key."""

    public_key: str = Field(..., min_length=1, description="New public key")


# ============================================================================
# Response Schemas
# ============================================================================

class UserResponse(BaseModel):
    """Public view of a user."""

    id: SnowflakeId
    name: str = Field(..., description="Display name, or first and last name")
    first_name: str
    last_name: str
    display_name: Optional[str] = None
    public_key: str
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class CurrentUserResponse(UserResponse):
    """The authenticated user's own record, including contact handles."""

    sub: str
    email: str
    phone_number: str
    updated_at: UtcDatetime
