"""
Pydantic schemas for group and membership endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cipherpost.models.group import Group, GroupUser
from cipherpost.schemas.common import SnowflakeId, UtcDatetime


# ============================================================================
# Request Schemas
# ============================================================================

class GroupCreate(BaseModel):
    """Schema for creating an ad-hoc group."""

    name: str = Field(..., min_length=1, max_length=255, description="Group name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure name is not whitespace only."""
        if not v.strip():
            raise ValueError("Name cannot be empty or whitespace only")
        return v.strip()

    model_config = ConfigDict(json_schema_extra={"example": {"name": "Book club"}})


class GroupMemberAdd(BaseModel):
    """Schema for adding a member."""

    user_id: SnowflakeId = Field(..., description="User to add")
    nickname: Optional[str] = Field(None, max_length=255, description="Nickname inside the group")


class GroupMemberUpdate(BaseModel):
    """
    Schema for updating a member.

    Only fields present in the request body are applied; an explicit null
    nickname clears it.
    """

    is_admin: Optional[bool] = Field(None, description="Promote (true) or demote (false)")
    nickname: Optional[str] = Field(None, max_length=255, description="Nickname inside the group")


# ============================================================================
# Response Schemas
# ============================================================================

class GroupMemberResponse(BaseModel):
    """A member as shown inside a group."""

    user_id: SnowflakeId
    name: str = Field(..., description="Nickname if set, else the user's name")
    nickname: Optional[str] = None
    is_admin: bool
    public_key: str = Field(..., description="Key to encrypt this member's copy with")
    joined_at: UtcDatetime

    @classmethod
    def from_member(cls, member: GroupUser) -> "GroupMemberResponse":
        return cls(
            user_id=member.user_id,
            name=member.display_name,
            nickname=member.nickname,
            is_admin=member.is_admin,
            public_key=member.user.public_key,
            joined_at=member.created_at,
        )


class GroupResponse(BaseModel):
    """Schema for a group with its members."""

    id: SnowflakeId
    name: str = Field(..., description="Group name, or the member names for request-born groups")
    message_request_id: Optional[SnowflakeId] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
    members: List[GroupMemberResponse] = Field(default_factory=list)

    @classmethod
    def from_group(cls, group: Group) -> "GroupResponse":
        return cls(
            id=group.id,
            name=group.display_name,
            message_request_id=group.message_request_id,
            created_at=group.created_at,
            updated_at=group.updated_at,
            members=[GroupMemberResponse.from_member(member) for member in group.members],
        )


class GroupListResponse(BaseModel):
    data: List[GroupResponse]
