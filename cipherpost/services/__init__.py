"""
Service layer with business logic.
"""
from cipherpost.services.user_service import UserService
from cipherpost.services.message_request_service import MessageRequestService
from cipherpost.services.group_service import GroupService
from cipherpost.services.message_service import MessageService, FanoutResult, ReceivedMessage
from cipherpost.services.push_service import (
    PushSubscriptionService,
    PushDispatcher,
    DispatchReport,
)

__all__ = [
    "UserService",
    "MessageRequestService",
    "GroupService",
    "MessageService",
    "FanoutResult",
    "ReceivedMessage",
    "PushSubscriptionService",
    "PushDispatcher",
    "DispatchReport",
]
