"""
Message request service: the contact admission workflow.

A request is created pending by its source and approved at most once by its
destination. Approval and the creation of the pair's group commit in a
single transaction.
"""
import logging
from typing import List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import run_in_transaction
from cipherpost.core.exceptions import (
    AlreadyApprovedError,
    DuplicatePendingError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from cipherpost.core.ids import next_id
from cipherpost.models.group import Group
from cipherpost.models.message_request import MessageRequest
from cipherpost.models.user import User
from cipherpost.repositories.group_repo import GroupRepository
from cipherpost.repositories.message_request_repo import MessageRequestRepository
from cipherpost.repositories.user_repo import UserRepository
from cipherpost.services.group_service import GroupService
from cipherpost.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class MessageRequestService:
    """Service for message request operations."""

    def __init__(self, db: AsyncSession):
        """
        Initialize message request service.

        Args:
            db: Database session
        """
        self.db = db
        self.request_repo = MessageRequestRepository(db)
        self.user_repo = UserRepository(db)
        self.group_repo = GroupRepository(db)
        self.group_service = GroupService(db)

    async def create(self, source: User, destination_id: int) -> MessageRequest:
        """
        Propose contact from ``source`` to ``destination_id``.

        The pending-pair check below is only a fast path; the partial unique
        index on pending pairs is what rejects concurrent duplicates.

        Raises:
            InvalidRequestError: Self-addressed request
            NotFoundError: Destination user does not exist
            DuplicatePendingError: A pending request for the pair already exists
        """
        source_id = source.id
        if source_id == destination_id:
            raise InvalidRequestError("Cannot send a message request to yourself")

        if not await self.user_repo.exists(destination_id):
            raise NotFoundError("User not found")

        if await self.request_repo.get_pending(source_id, destination_id):
            raise DuplicatePendingError()

        async def _create() -> MessageRequest:
            return await self.request_repo.create(
                id=next_id(),
                source_id=source_id,
                destination_id=destination_id
            )

        try:
            request = await run_in_transaction(self.db, _create)
        except IntegrityError:
            raise DuplicatePendingError()

        logger.info(
            "Message request %s created from %s to %s",
            request.id, source_id, destination_id
        )
        return await self.request_repo.get_with_users(request.id)

    async def approve(self, request_id: int, actor: User) -> Tuple[MessageRequest, Group]:
        """
        Approve a pending request and create the pair's group.

        Both writes share one transaction: the compare-and-set on
        ``approved_at`` decides which of several racing approvals wins, and
        the unique ``groups.message_request_id`` guarantees a single group.

        Returns:
            The approved request and its new group

        Raises:
            NotFoundError: Request does not exist
            ForbiddenError: Actor is not the destination
            AlreadyApprovedError: Request was approved before (or concurrently)
        """
        actor_id = actor.id
        request = await self.request_repo.get(request_id)
        if not request:
            raise NotFoundError("Message request not found")
        if request.destination_id != actor_id:
            raise ForbiddenError("Only the recipient can approve a message request")
        if request.is_approved:
            raise AlreadyApprovedError()

        async def _approve() -> Group:
            if not await self.request_repo.mark_approved(request_id, utc_now()):
                raise AlreadyApprovedError()
            await self.db.refresh(request)
            return await self.group_service.create_from_request(request)

        try:
            group = await run_in_transaction(self.db, _approve)
        except IntegrityError:
            raise AlreadyApprovedError()

        logger.info("Message request %s approved by %s", request_id, actor_id)
        approved = await self.request_repo.get_with_users(request_id)
        return approved, await self.group_repo.get_with_members(group.id)

    async def get(self, request_id: int, actor: User) -> MessageRequest:
        """
        Get a request visible to one of its two parties.

        Anyone else gets NotFoundError so request existence is not leaked.
        """
        request = await self.request_repo.get_with_users(request_id)
        if not request or actor.id not in (request.source_id, request.destination_id):
            raise NotFoundError("Message request not found")
        return request

    async def list_pending(self, user: User) -> List[MessageRequest]:
        """Pending requests awaiting the user's approval."""
        return await self.request_repo.list_pending_for_destination(user.id)

    async def list_sent(self, user: User) -> List[MessageRequest]:
        """Requests the user has sent, pending or approved."""
        return await self.request_repo.list_by_source(user.id)
