"""
Message request repository for database operations.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cipherpost.models.message_request import MessageRequest
from cipherpost.repositories.base import BaseRepository


class MessageRequestRepository(BaseRepository[MessageRequest]):
    """Repository for message request database operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(MessageRequest, db)

    async def get_with_users(self, request_id: int) -> Optional[MessageRequest]:
        """Get a request with both parties freshly loaded."""
        result = await self.db.execute(
            select(MessageRequest)
            .where(MessageRequest.id == request_id)
            .options(
                selectinload(MessageRequest.source),
                selectinload(MessageRequest.destination)
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_pending(
        self, source_id: int, destination_id: int
    ) -> Optional[MessageRequest]:
        """
        Get the unresolved request for an ordered (source, destination) pair.

        Args:
            source_id: Requesting user ID
            destination_id: Addressed user ID

        Returns:
            Pending request or None
        """
        result = await self.db.execute(
            select(MessageRequest).where(
                and_(
                    MessageRequest.source_id == source_id,
                    MessageRequest.destination_id == destination_id,
                    MessageRequest.approved_at.is_(None)
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_pending_for_destination(self, destination_id: int) -> List[MessageRequest]:
        """Pending requests addressed to a user, newest first (approval inbox)."""
        result = await self.db.execute(
            select(MessageRequest)
            .where(
                and_(
                    MessageRequest.destination_id == destination_id,
                    MessageRequest.approved_at.is_(None)
                )
            )
            .order_by(desc(MessageRequest.id))
        )
        return list(result.scalars().all())

    async def list_by_source(self, source_id: int) -> List[MessageRequest]:
        """All requests originated by a user, newest first."""
        result = await self.db.execute(
            select(MessageRequest)
            .where(MessageRequest.source_id == source_id)
            .order_by(desc(MessageRequest.id))
        )
        return list(result.scalars().all())

    async def mark_approved(self, request_id: int, approved_at: datetime) -> bool:
        """
        Approve a pending request with a compare-and-set update.

        Only a row still pending is touched, so of two racing approvals exactly
        one observes an affected row.

        Args:
            request_id: Request ID
            approved_at: Approval timestamp

        Returns:
            True if this call performed the transition
        """
        result = await self.db.execute(
            update(MessageRequest)
            .where(
                and_(
                    MessageRequest.id == request_id,
                    MessageRequest.approved_at.is_(None)
                )
            )
            .values(approved_at=approved_at, updated_at=approved_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount == 1
