"""
SQLAlchemy models for the Cipherpost server.

All models must be imported here so Base.metadata knows every table.
"""

# Import Base first
from cipherpost.models.base import Base, TimestampMixin, SnowflakeIdMixin

# Import all models (order matters for relationships)
from cipherpost.models.user import User
from cipherpost.models.message_request import MessageRequest, MessageRequestStatus
from cipherpost.models.group import Group, GroupUser
from cipherpost.models.message import Message, MessageContent
from cipherpost.models.push_subscription import UserPushSubscription

# Export all models and enums
__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "SnowflakeIdMixin",
    # Users
    "User",
    # Message requests
    "MessageRequest",
    "MessageRequestStatus",
    # Groups
    "Group",
    "GroupUser",
    # Messages
    "Message",
    "MessageContent",
    # Push
    "UserPushSubscription",
]
