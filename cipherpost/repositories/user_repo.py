"""
User repository for database operations.
Backs the identity directory: lookups by id, subject and contact handle.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.models.user import User
from cipherpost.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize user repository."""
        super().__init__(User, db)

    async def get_by_sub(self, sub: str) -> Optional[User]:
        """
        Get user by identity-provider subject.

        Args:
            sub: Subject claim

        Returns:
            User instance or None
        """
        result = await self.db.execute(
            select(User).where(User.sub == sub)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email address (case-insensitive)."""
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_by_phone_number(self, phone_number: str) -> Optional[User]:
        """Get user by phone number."""
        result = await self.db.execute(
            select(User).where(User.phone_number == phone_number.strip())
        )
        return result.scalar_one_or_none()

    async def find_by_handle(self, handle: str) -> Optional[User]:
        """
        Resolve a contact handle to a user.

        Handles containing ``@`` are emails, anything else is a phone number.
        """
        if "@" in handle:
            return await self.get_by_email(handle)
        return await self.get_by_phone_number(handle)
