"""
Domain error taxonomy.

Every error is an HTTPException subclass so services can raise it directly
and FastAPI renders it with the matching status code. The ``code`` attribute
is a stable machine-readable identifier exposed next to ``detail``.
"""
from typing import Any, Iterable, List

from fastapi import HTTPException, status


class MessagingError(HTTPException):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "error"
    default_detail: str = "Unexpected error"

    def __init__(self, detail: Any = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail if detail is not None else self.default_detail,
        )


class NotFoundError(MessagingError):
    """Referenced entity is absent."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Not found"


class ForbiddenError(MessagingError):
    """Actor lacks the required role or membership."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "Forbidden"


class InvalidRequestError(MessagingError):
    """Malformed input, e.g. a self-addressed message request."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"
    default_detail = "Invalid request"


class ConflictError(MessagingError):
    """State conflict with an existing entity."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "Conflict"


class DuplicatePendingError(ConflictError):
    code = "duplicate_pending"
    default_detail = "A pending message request already exists for this user"


class AlreadyApprovedError(ConflictError):
    code = "already_approved"
    default_detail = "Message request has already been approved"


class AlreadyMemberError(ConflictError):
    code = "already_member"
    default_detail = "User is already a member of this group"


class LastAdminError(ConflictError):
    code = "last_admin"
    default_detail = "A group must keep at least one admin"


class IncompleteFanoutError(MessagingError):
    """
    Supplied ciphertexts do not cover exactly the current membership.

    ``missing`` holds members without a ciphertext, ``unexpected`` holds
    recipients that are not members. Clients refresh the member list and retry.
    """

    status_code = status.HTTP_409_CONFLICT
    code = "incomplete_fanout"

    def __init__(self, missing: Iterable[int], unexpected: Iterable[int]):
        self.missing: List[int] = sorted(missing)
        self.unexpected: List[int] = sorted(unexpected)
        super().__init__(
            detail={
                "message": "Ciphertexts must cover exactly the current group members",
                "missing": [str(user_id) for user_id in self.missing],
                "unexpected": [str(user_id) for user_id in self.unexpected],
            }
        )


class TransientFailureError(MessagingError):
    """Storage or push channel unavailable; safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transient_failure"
    default_detail = "Service temporarily unavailable, please retry"
