"""
Group repository for database operations.
Handles groups, memberships, and the row locks guarding membership checks.
"""
from typing import Optional, List

from sqlalchemy import select, func, and_, desc, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cipherpost.models.group import Group, GroupUser
from cipherpost.repositories.base import BaseRepository


class GroupRepository(BaseRepository[Group]):
    """Repository for group database operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(Group, db)

    async def get_with_members(self, group_id: int) -> Optional[Group]:
        """
        Get group with members and their users freshly loaded.

        Args:
            group_id: Group ID

        Returns:
            Group with relations or None
        """
        result = await self.db.execute(
            select(Group)
            .where(Group.id == group_id)
            .options(selectinload(Group.members).selectinload(GroupUser.user))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock_for_update(self, group_id: int) -> Optional[Group]:
        """
        Load the group row with an exclusive lock (SELECT ... FOR UPDATE).

        Membership mutations take this lock so their checks (admin count,
        existing membership) and writes see a stable membership set.
        """
        result = await self.db.execute(
            select(Group).where(Group.id == group_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def lock_for_share(self, group_id: int) -> Optional[Group]:
        """
        Load the group row with a shared lock (SELECT ... FOR SHARE).

        Concurrent sends may proceed together, but a membership change waits
        until the fanout holding the lock has committed.
        """
        result = await self.db.execute(
            select(Group).where(Group.id == group_id).with_for_update(read=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> List[Group]:
        """
        Get all groups a user belongs to, newest first.

        Args:
            user_id: User ID

        Returns:
            Groups with members loaded
        """
        member_subquery = (
            select(GroupUser.group_id)
            .where(GroupUser.user_id == user_id)
        )

        result = await self.db.execute(
            select(Group)
            .where(Group.id.in_(member_subquery))
            .options(selectinload(Group.members).selectinload(GroupUser.user))
            .order_by(desc(Group.id))
        )
        return list(result.scalars().all())


class GroupMemberRepository:
    """Repository for group membership operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_member(
        self, group_id: int, user_id: int
    ) -> Optional[GroupUser]:
        """
        Get membership record.

        Args:
            group_id: Group ID
            user_id: User ID

        Returns:
            GroupUser or None
        """
        result = await self.db.execute(
            select(GroupUser)
            .where(
                and_(
                    GroupUser.group_id == group_id,
                    GroupUser.user_id == user_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def is_member(self, group_id: int, user_id: int) -> bool:
        """Check if user is a member of group."""
        result = await self.db.execute(
            select(func.count())
            .select_from(GroupUser)
            .where(
                and_(
                    GroupUser.group_id == group_id,
                    GroupUser.user_id == user_id
                )
            )
        )
        return result.scalar() > 0

    async def is_admin(self, group_id: int, user_id: int) -> bool:
        """Check if user is an admin of group."""
        result = await self.db.execute(
            select(func.count())
            .select_from(GroupUser)
            .where(
                and_(
                    GroupUser.group_id == group_id,
                    GroupUser.user_id == user_id,
                    GroupUser.is_admin.is_(True)
                )
            )
        )
        return result.scalar() > 0

    async def get_members(self, group_id: int) -> List[GroupUser]:
        """Get all members of a group in join order."""
        result = await self.db.execute(
            select(GroupUser)
            .where(GroupUser.group_id == group_id)
            .order_by(GroupUser.id)
        )
        return list(result.scalars().all())

    async def get_member_ids(self, group_id: int) -> List[int]:
        """Get the user IDs of all current members."""
        result = await self.db.execute(
            select(GroupUser.user_id).where(GroupUser.group_id == group_id)
        )
        return list(result.scalars().all())

    async def get_admin_count(self, group_id: int) -> int:
        """Count admins of a group."""
        result = await self.db.execute(
            select(func.count())
            .select_from(GroupUser)
            .where(
                and_(
                    GroupUser.group_id == group_id,
                    GroupUser.is_admin.is_(True)
                )
            )
        )
        return result.scalar()

    async def add_member(
        self,
        group_id: int,
        user_id: int,
        is_admin: bool = False,
        nickname: Optional[str] = None
    ) -> GroupUser:
        """
        Insert a membership row.

        The (group_id, user_id) unique constraint rejects duplicates with an
        IntegrityError at flush time.
        """
        member = GroupUser(
            group_id=group_id,
            user_id=user_id,
            is_admin=is_admin,
            nickname=nickname
        )
        self.db.add(member)
        await self.db.flush()
        return member

    async def remove_member(self, group_id: int, user_id: int) -> bool:
        """
        Remove member from group.

        Returns:
            True if removed, False if not found
        """
        result = await self.db.execute(
            delete(GroupUser)
            .where(
                and_(
                    GroupUser.group_id == group_id,
                    GroupUser.user_id == user_id
                )
            )
        )
        await self.db.flush()
        return result.rowcount > 0

    async def set_admin(self, member: GroupUser, is_admin: bool) -> GroupUser:
        """Update a member's admin flag."""
        member.is_admin = is_admin
        await self.db.flush()
        return member

    async def set_nickname(self, member: GroupUser, nickname: Optional[str]) -> GroupUser:
        """Update a member's nickname (None clears it)."""
        member.nickname = nickname
        await self.db.flush()
        return member
