"""
Pydantic schema exports.
Provides request/response models for API endpoints.
"""
from cipherpost.schemas.user import (
    UserEnroll,
    UserUpdate,
    PublicKeyUpdate,
    UserResponse,
    CurrentUserResponse,
)
from cipherpost.schemas.group import (
    GroupCreate,
    GroupMemberAdd,
    GroupMemberUpdate,
    GroupMemberResponse,
    GroupResponse,
    GroupListResponse,
)
from cipherpost.schemas.message_request import (
    MessageRequestCreate,
    MessageRequestResponse,
    MessageRequestApproveResponse,
)
from cipherpost.schemas.message import (
    MessageCreate,
    MessageSendResponse,
    MessageResponse,
    MessageListResponse,
)
from cipherpost.schemas.push_subscription import (
    PushSubscriptionCreate,
    PushSubscriptionResponse,
)

__all__ = [
    # User schemas
    "UserEnroll",
    "UserUpdate",
    "PublicKeyUpdate",
    "UserResponse",
    "CurrentUserResponse",
    # Group schemas
    "GroupCreate",
    "GroupMemberAdd",
    "GroupMemberUpdate",
    "GroupMemberResponse",
    "GroupResponse",
    "GroupListResponse",
    # Message request schemas
    "MessageRequestCreate",
    "MessageRequestResponse",
    "MessageRequestApproveResponse",
    # Message schemas
    "MessageCreate",
    "MessageSendResponse",
    "MessageResponse",
    "MessageListResponse",
    # Push subscription schemas
    "PushSubscriptionCreate",
    "PushSubscriptionResponse",
]
