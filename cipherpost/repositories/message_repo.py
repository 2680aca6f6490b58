"""
Message repository for database operations.

Reads of message content always filter by recipient: no query here can
return a ciphertext addressed to somebody other than the requesting user.
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.models.message import Message, MessageContent
from cipherpost.repositories.base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Repository for message and message content operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    async def get_by_idempotency_key(
        self, source_id: int, idempotency_key: str
    ) -> Optional[Message]:
        """
        Find a message previously sent with the same idempotency key.

        Args:
            source_id: Sender user ID
            idempotency_key: Client-supplied key

        Returns:
            Message or None
        """
        result = await self.db.execute(
            select(Message).where(
                and_(
                    Message.source_id == source_id,
                    Message.idempotency_key == idempotency_key
                )
            )
        )
        return result.scalar_one_or_none()

    async def add_contents(self, message_id: int, ciphertexts: Dict[int, bytes]) -> int:
        """
        Insert one content row per recipient.

        Args:
            message_id: Message ID
            ciphertexts: Mapping of recipient user ID to ciphertext

        Returns:
            Number of rows inserted
        """
        self.db.add_all(
            MessageContent(message_id=message_id, user_id=user_id, content=content)
            for user_id, content in ciphertexts.items()
        )
        await self.db.flush()
        return len(ciphertexts)

    async def get_recipient_ids(self, message_id: int) -> List[int]:
        """User IDs holding a content row for a message."""
        result = await self.db.execute(
            select(MessageContent.user_id)
            .where(MessageContent.message_id == message_id)
            .order_by(MessageContent.user_id)
        )
        return list(result.scalars().all())

    async def list_for_recipient(
        self,
        group_id: int,
        user_id: int,
        before: Optional[int] = None,
        limit: int = 50
    ) -> List[Tuple[Message, bytes]]:
        """
        Get a page of group messages with the caller's own ciphertext.

        Messages without a content row for the user (sent before they joined)
        are not returned.

        Args:
            group_id: Group ID
            user_id: Requesting user ID
            before: Only return messages with an ID lower than this cursor
            limit: Page size

        Returns:
            List of (message, own ciphertext), newest first
        """
        query = (
            select(Message, MessageContent.content)
            .join(
                MessageContent,
                and_(
                    MessageContent.message_id == Message.id,
                    MessageContent.user_id == user_id
                )
            )
            .where(Message.group_id == group_id)
        )

        if before is not None:
            query = query.where(Message.id < before)

        query = query.order_by(desc(Message.id)).limit(limit)

        result = await self.db.execute(query)
        return [(message, content) for message, content in result.all()]

    async def latest_per_group_for_recipient(
        self, user_id: int
    ) -> List[Tuple[Message, bytes]]:
        """
        Latest message of every group addressed to a user, with own ciphertext.

        Returns:
            List of (message, own ciphertext), most recent group activity first
        """
        latest = (
            select(func.max(Message.id).label("message_id"))
            .join(MessageContent, MessageContent.message_id == Message.id)
            .where(MessageContent.user_id == user_id)
            .group_by(Message.group_id)
            .subquery()
        )

        result = await self.db.execute(
            select(Message, MessageContent.content)
            .join(latest, latest.c.message_id == Message.id)
            .join(
                MessageContent,
                and_(
                    MessageContent.message_id == Message.id,
                    MessageContent.user_id == user_id
                )
            )
            .order_by(desc(Message.id))
        )
        return [(message, content) for message, content in result.all()]
