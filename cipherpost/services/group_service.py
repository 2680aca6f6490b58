"""
Group service containing business logic for groups and memberships.

Every membership mutation locks the group row first, so its authorization
checks (admin flag, admin count, existing membership) and its write happen
against the same membership state.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import run_in_transaction
from cipherpost.core.exceptions import (
    AlreadyMemberError,
    ForbiddenError,
    InvalidRequestError,
    LastAdminError,
    NotFoundError,
)
from cipherpost.core.ids import next_id
from cipherpost.models.group import Group, GroupUser
from cipherpost.models.message_request import MessageRequest
from cipherpost.models.user import User
from cipherpost.repositories.group_repo import GroupRepository, GroupMemberRepository
from cipherpost.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class GroupService:
    """Service for group and membership operations."""

    def __init__(self, db: AsyncSession):
        """
        Initialize group service.

        Args:
            db: Database session
        """
        self.db = db
        self.group_repo = GroupRepository(db)
        self.member_repo = GroupMemberRepository(db)
        self.user_repo = UserRepository(db)

    async def _lock_group(self, group_id: int) -> Group:
        group = await self.group_repo.lock_for_update(group_id)
        if not group:
            raise NotFoundError("Group not found")
        return group

    async def _require_admin(self, group_id: int, actor_id: int) -> None:
        if not await self.member_repo.is_admin(group_id, actor_id):
            raise ForbiddenError("Only group admins can manage members")

    async def create_from_request(self, request: MessageRequest) -> Group:
        """
        Create the group of an approved message request.

        Seeds exactly the two parties, both as admins. Does not commit: it
        runs inside the approval transaction so the approval and the group
        become visible together or not at all.

        Args:
            request: The request being approved

        Returns:
            Created group (members not loaded)
        """
        group = await self.group_repo.create(
            id=next_id(),
            name=None,
            message_request_id=request.id
        )
        await self.member_repo.add_member(group.id, request.source_id, is_admin=True)
        await self.member_repo.add_member(group.id, request.destination_id, is_admin=True)

        logger.info("Created group %s from message request %s", group.id, request.id)
        return group

    async def create_ad_hoc(self, creator: User, name: str) -> Group:
        """
        Create a group with no request back-reference.

        Args:
            creator: User becoming the sole initial admin
            name: Group name

        Returns:
            Created group with members loaded

        Raises:
            InvalidRequestError: If the name is empty
        """
        creator_id = creator.id
        name = (name or "").strip()
        if not name:
            raise InvalidRequestError("Group name must not be empty")

        async def _create() -> Group:
            group = await self.group_repo.create(id=next_id(), name=name)
            await self.member_repo.add_member(group.id, creator_id, is_admin=True)
            return group

        group = await run_in_transaction(self.db, _create)
        logger.info("User %s created group %s", creator_id, group.id)
        return await self.group_repo.get_with_members(group.id)

    async def add_member(
        self,
        group_id: int,
        actor: User,
        target_id: int,
        nickname: Optional[str] = None
    ) -> Group:
        """
        Add a user to a group as a regular member.

        Raises:
            NotFoundError: Group or target user does not exist
            ForbiddenError: Actor is not an admin
            AlreadyMemberError: Target already belongs to the group
        """
        actor_id = actor.id

        async def _add() -> None:
            await self._lock_group(group_id)
            await self._require_admin(group_id, actor_id)

            if not await self.user_repo.exists(target_id):
                raise NotFoundError("User not found")
            if await self.member_repo.get_member(group_id, target_id):
                raise AlreadyMemberError()

            await self.member_repo.add_member(group_id, target_id, nickname=nickname)

        try:
            await run_in_transaction(self.db, _add)
        except IntegrityError:
            raise AlreadyMemberError()

        logger.info("User %s added %s to group %s", actor_id, target_id, group_id)
        return await self.group_repo.get_with_members(group_id)

    async def update_member(
        self,
        group_id: int,
        actor: User,
        target_id: int,
        is_admin: Optional[bool] = None,
        nickname: Optional[str] = None,
        update_nickname: bool = False
    ) -> Group:
        """
        Change a member's admin flag and/or nickname in one transaction.

        Every permission check runs before either write, so a refused
        nickname change leaves the admin flag untouched and vice versa.

        Args:
            group_id: Group ID
            actor: User making the change
            target_id: Member being changed
            is_admin: New admin flag, or None to leave it
            nickname: New nickname; blank clears it
            update_nickname: Whether ``nickname`` should be applied at all

        Raises:
            NotFoundError: Group does not exist or target is not a member
            ForbiddenError: Actor may not make one of the changes
            LastAdminError: Demotion would leave the group without an admin
        """
        actor_id = actor.id
        value = nickname.strip() if nickname else None

        async def _update() -> None:
            await self._lock_group(group_id)

            if is_admin is not None:
                await self._require_admin(group_id, actor_id)
            if update_nickname:
                if actor_id != target_id:
                    await self._require_admin(group_id, actor_id)
                elif not await self.member_repo.is_member(group_id, actor_id):
                    raise ForbiddenError("Not a member of this group")

            member = await self.member_repo.get_member(group_id, target_id)
            if not member:
                raise NotFoundError("Member not found")

            if is_admin is not None and member.is_admin and not is_admin:
                if await self.member_repo.get_admin_count(group_id) <= 1:
                    raise LastAdminError()

            if is_admin is not None:
                await self.member_repo.set_admin(member, is_admin)
            if update_nickname:
                await self.member_repo.set_nickname(member, value or None)

        await run_in_transaction(self.db, _update)
        if is_admin is not None:
            logger.info(
                "User %s set admin=%s for %s in group %s",
                actor_id, is_admin, target_id, group_id
            )
        return await self.group_repo.get_with_members(group_id)

    async def set_admin(
        self,
        group_id: int,
        actor: User,
        target_id: int,
        is_admin: bool
    ) -> Group:
        """
        Promote or demote a member.

        Raises:
            NotFoundError: Group does not exist or target is not a member
            ForbiddenError: Actor is not an admin
            LastAdminError: Demotion would leave the group without an admin
        """
        return await self.update_member(group_id, actor, target_id, is_admin=is_admin)

    async def remove_member(self, group_id: int, actor: User, target_id: int) -> None:
        """
        Remove a member. Members may remove themselves, admins anyone.

        Removing the only admin is refused even when they are the last member;
        another member must be promoted first.

        Raises:
            NotFoundError: Group does not exist or target is not a member
            ForbiddenError: Actor is neither the target nor an admin
            LastAdminError: Target is the only admin
        """
        actor_id = actor.id

        async def _remove() -> None:
            await self._lock_group(group_id)
            if actor_id != target_id:
                await self._require_admin(group_id, actor_id)

            member = await self.member_repo.get_member(group_id, target_id)
            if not member:
                raise NotFoundError("Member not found")

            if member.is_admin and await self.member_repo.get_admin_count(group_id) <= 1:
                raise LastAdminError()

            await self.member_repo.remove_member(group_id, target_id)

        await run_in_transaction(self.db, _remove)
        logger.info("User %s removed %s from group %s", actor_id, target_id, group_id)

    async def set_nickname(
        self,
        group_id: int,
        actor: User,
        target_id: int,
        nickname: Optional[str]
    ) -> Group:
        """
        Set or clear a member's nickname. Members may rename themselves, admins anyone.

        Raises:
            NotFoundError: Group does not exist or target is not a member
            ForbiddenError: Actor may not rename the target
        """
        return await self.update_member(
            group_id, actor, target_id, nickname=nickname, update_nickname=True
        )

    async def get_group(self, group_id: int, actor: User) -> Group:
        """
        Get a group visible to its members.

        Raises:
            NotFoundError: Group does not exist
            ForbiddenError: Actor is not a member
        """
        group = await self.group_repo.get_with_members(group_id)
        if not group:
            raise NotFoundError("Group not found")
        if not any(member.user_id == actor.id for member in group.members):
            raise ForbiddenError("Not a member of this group")
        return group

    async def list_groups(self, user: User) -> List[Group]:
        """All groups the user belongs to, newest first."""
        return await self.group_repo.list_for_user(user.id)

    async def members_of(self, group_id: int) -> List[GroupUser]:
        """Current members of a group in join order."""
        return await self.member_repo.get_members(group_id)

    async def is_member(self, group_id: int, user_id: int) -> bool:
        return await self.member_repo.is_member(group_id, user_id)

    async def is_admin(self, group_id: int, user_id: int) -> bool:
        return await self.member_repo.is_admin(group_id, user_id)
