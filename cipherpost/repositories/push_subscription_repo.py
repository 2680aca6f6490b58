"""
Push subscription repository for database operations.
"""
from typing import Iterable, List, Optional

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.models.push_subscription import UserPushSubscription
from cipherpost.repositories.base import BaseRepository


class PushSubscriptionRepository(BaseRepository[UserPushSubscription]):
    """Repository for push subscription database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize push subscription repository."""
        super().__init__(UserPushSubscription, db)

    async def get_by_endpoint(
        self, user_id: int, endpoint: str
    ) -> Optional[UserPushSubscription]:
        """Get a user's subscription for an endpoint."""
        result = await self.db.execute(
            select(UserPushSubscription).where(
                and_(
                    UserPushSubscription.user_id == user_id,
                    UserPushSubscription.endpoint == endpoint
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_for_user(
        self, subscription_id: int, user_id: int
    ) -> Optional[UserPushSubscription]:
        """Get a subscription only if it belongs to the user."""
        result = await self.db.execute(
            select(UserPushSubscription).where(
                and_(
                    UserPushSubscription.id == subscription_id,
                    UserPushSubscription.user_id == user_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> List[UserPushSubscription]:
        """All subscriptions of one user."""
        return await self.list_for_users([user_id])

    async def list_for_users(self, user_ids: Iterable[int]) -> List[UserPushSubscription]:
        """All subscriptions of several users."""
        user_ids = list(user_ids)
        if not user_ids:
            return []

        result = await self.db.execute(
            select(UserPushSubscription)
            .where(UserPushSubscription.user_id.in_(user_ids))
            .order_by(UserPushSubscription.id)
        )
        return list(result.scalars().all())

    async def delete_many(self, subscription_ids: Iterable[int]) -> int:
        """
        Delete subscriptions by ID.

        Returns:
            Number of rows deleted
        """
        subscription_ids = list(subscription_ids)
        if not subscription_ids:
            return 0

        result = await self.db.execute(
            delete(UserPushSubscription).where(UserPushSubscription.id.in_(subscription_ids))
        )
        await self.db.flush()
        return result.rowcount
