"""
API v1 router exports.
Provides API endpoint routers.
"""
from cipherpost.api.v1 import users, message_requests, groups, messages, push_subscriptions

__all__ = [
    "users",
    "message_requests",
    "groups",
    "messages",
    "push_subscriptions",
]
