"""
Repository layer for database access.
"""
from cipherpost.repositories.base import BaseRepository
from cipherpost.repositories.user_repo import UserRepository
from cipherpost.repositories.message_request_repo import MessageRequestRepository
from cipherpost.repositories.group_repo import GroupRepository, GroupMemberRepository
from cipherpost.repositories.message_repo import MessageRepository
from cipherpost.repositories.push_subscription_repo import PushSubscriptionRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "MessageRequestRepository",
    "GroupRepository",
    "GroupMemberRepository",
    "MessageRepository",
    "PushSubscriptionRepository",
]
