"""
Unit tests for GroupService.
Tests membership authorization and the at-least-one-admin rule.
"""
import pytest

from cipherpost.core.exceptions import (
    AlreadyMemberError,
    ForbiddenError,
    InvalidRequestError,
    LastAdminError,
    NotFoundError,
)
from cipherpost.core.ids import next_id
from cipherpost.services.group_service import GroupService


async def _admin_count(service: GroupService, group_id: int) -> int:
    return await service.member_repo.get_admin_count(group_id)


class TestCreateGroup:
    """Test group creation."""

    async def test_create_ad_hoc(self, db_session, alice):
        """Test the creator becomes the sole initial admin."""
        service = GroupService(db_session)

        group = await service.create_ad_hoc(alice, "  Book club  ")

        assert group.name == "Book club"
        assert group.message_request_id is None
        assert [(m.user_id, m.is_admin) for m in group.members] == [(alice.id, True)]

    async def test_create_ad_hoc_requires_name(self, db_session, alice):
        """Test a blank name is rejected."""
        service = GroupService(db_session)

        with pytest.raises(InvalidRequestError):
            await service.create_ad_hoc(alice, "   ")

    async def test_request_group_display_name_falls_back_to_members(
        self, db_session, approved_group
    ):
        """Test an unnamed group is shown as its members' names."""
        assert approved_group.display_name == "Alice Anders, Bob Brown"


class TestAddMember:
    """Test adding members."""

    async def test_admin_adds_member(self, db_session, approved_group, alice, carol):
        """Test an admin adds a regular member."""
        service = GroupService(db_session)

        group = await service.add_member(approved_group.id, alice, carol.id, nickname="Caz")

        added = next(m for m in group.members if m.user_id == carol.id)
        assert added.is_admin is False
        assert added.nickname == "Caz"
        assert added.display_name == "Caz"
        assert len(group.members) == 3

    async def test_non_admin_cannot_add(self, db_session, trio_group, carol, dave):
        """Test a regular member cannot add anyone."""
        service = GroupService(db_session)

        with pytest.raises(ForbiddenError):
            await service.add_member(trio_group.id, carol, dave.id)

    async def test_non_member_cannot_add(self, db_session, approved_group, dave, carol):
        """Test an outsider trying to add a member is Forbidden."""
        service = GroupService(db_session)

        with pytest.raises(ForbiddenError):
            await service.add_member(approved_group.id, dave, carol.id)

        assert not await service.is_member(approved_group.id, carol.id)

    async def test_add_existing_member(self, db_session, approved_group, alice, bob):
        """Test adding a current member is AlreadyMember."""
        service = GroupService(db_session)

        with pytest.raises(AlreadyMemberError):
            await service.add_member(approved_group.id, alice, bob.id)

    async def test_membership_constraint_catches_duplicate(
        self, db_session, trio_group, alice, carol, mocker
    ):
        """Test the unique (group, user) constraint backs up the lookup."""
        service = GroupService(db_session)
        mocker.patch.object(service.member_repo, "get_member", return_value=None)

        with pytest.raises(AlreadyMemberError):
            await service.add_member(trio_group.id, alice, carol.id)

    async def test_add_unknown_user(self, db_session, approved_group, alice):
        """Test adding a missing user is NotFound."""
        service = GroupService(db_session)

        with pytest.raises(NotFoundError):
            await service.add_member(approved_group.id, alice, next_id())

    async def test_add_to_unknown_group(self, db_session, alice, carol):
        """Test adding to a missing group is NotFound."""
        service = GroupService(db_session)

        with pytest.raises(NotFoundError):
            await service.add_member(next_id(), alice, carol.id)


class TestAdminRules:
    """Test promotion, demotion and removal against the admin invariant."""

    async def test_demote_last_admin_rejected(self, db_session, alice, bob):
        """Test demoting the only admin fails with LastAdmin."""
        service = GroupService(db_session)
        group_id = (await service.create_ad_hoc(alice, "Solo")).id
        await service.add_member(group_id, alice, bob.id)

        with pytest.raises(LastAdminError):
            await service.set_admin(group_id, alice, alice.id, False)

        assert await _admin_count(service, group_id) == 1

    async def test_demote_with_another_admin(self, db_session, approved_group, alice, bob):
        """Test demotion is allowed while another admin remains."""
        service = GroupService(db_session)

        group = await service.set_admin(approved_group.id, alice, bob.id, False)

        assert {m.user_id: m.is_admin for m in group.members} == {alice.id: True, bob.id: False}
        assert await _admin_count(service, approved_group.id) == 1

    async def test_promote_then_hand_over(self, db_session, alice, bob):
        """Test the sole admin can step down after promoting a replacement."""
        service = GroupService(db_session)
        group = await service.create_ad_hoc(alice, "Handover")
        await service.add_member(group.id, alice, bob.id)

        await service.set_admin(group.id, alice, bob.id, True)
        assert await _admin_count(service, group.id) == 2

        await service.set_admin(group.id, alice, alice.id, False)
        assert await _admin_count(service, group.id) == 1
        assert await service.is_admin(group.id, bob.id)
        assert not await service.is_admin(group.id, alice.id)

    async def test_non_admin_cannot_promote(self, db_session, trio_group, carol):
        """Test a regular member cannot promote themself."""
        service = GroupService(db_session)

        with pytest.raises(ForbiddenError):
            await service.set_admin(trio_group.id, carol, carol.id, True)

    async def test_set_admin_on_non_member(self, db_session, approved_group, alice, dave):
        """Test promoting a non-member is NotFound."""
        service = GroupService(db_session)

        with pytest.raises(NotFoundError):
            await service.set_admin(approved_group.id, alice, dave.id, True)

    async def test_member_can_leave(self, db_session, trio_group, carol):
        """Test self-removal needs no admin rights."""
        service = GroupService(db_session)

        await service.remove_member(trio_group.id, carol, carol.id)

        assert not await service.is_member(trio_group.id, carol.id)

    async def test_member_cannot_remove_others(self, db_session, trio_group, carol, bob):
        """Test a regular member cannot remove someone else."""
        service = GroupService(db_session)

        with pytest.raises(ForbiddenError):
            await service.remove_member(trio_group.id, carol, bob.id)

        assert await service.is_member(trio_group.id, bob.id)

    async def test_admin_removes_member(self, db_session, trio_group, alice, carol):
        """Test an admin removes a regular member."""
        service = GroupService(db_session)

        await service.remove_member(trio_group.id, alice, carol.id)

        members = await service.members_of(trio_group.id)
        assert carol.id not in [m.user_id for m in members]

    async def test_last_admin_cannot_leave(self, db_session, alice, bob):
        """Test the only admin cannot leave without a replacement."""
        service = GroupService(db_session)
        group_id = (await service.create_ad_hoc(alice, "Stay")).id
        await service.add_member(group_id, alice, bob.id)

        with pytest.raises(LastAdminError):
            await service.remove_member(group_id, alice, alice.id)

        assert await _admin_count(service, group_id) == 1

    async def test_admin_can_leave_when_another_admin_remains(
        self, db_session, approved_group, alice, bob
    ):
        """Test an admin may leave while another admin stays."""
        service = GroupService(db_session)

        await service.remove_member(approved_group.id, bob, bob.id)

        assert await _admin_count(service, approved_group.id) == 1
        assert [m.user_id for m in await service.members_of(approved_group.id)] == [alice.id]

    async def test_remove_non_member(self, db_session, approved_group, alice, dave):
        """Test removing someone who is not a member is NotFound."""
        service = GroupService(db_session)

        with pytest.raises(NotFoundError):
            await service.remove_member(approved_group.id, alice, dave.id)


class TestUpdateMember:
    """Test combined admin and nickname changes."""

    async def test_demote_and_rename(self, db_session, approved_group, alice, bob):
        service = GroupService(db_session)

        group = await service.update_member(
            approved_group.id, alice, bob.id, is_admin=False, nickname=" Bobby ", update_nickname=True
        )

        member = next(m for m in group.members if m.user_id == bob.id)
        assert member.is_admin is False
        assert member.nickname == "Bobby"

    async def test_failed_rename_keeps_admin_flag(self, db_session, approved_group, alice, bob, mocker):
        """Test a failure in the nickname write rolls back the demotion with it."""
        group_id = approved_group.id
        service = GroupService(db_session)
        mocker.patch.object(
            service.member_repo, "set_nickname", side_effect=RuntimeError("write failed")
        )

        with pytest.raises(RuntimeError):
            await service.update_member(
                group_id, alice, bob.id, is_admin=False, nickname="Bobby", update_nickname=True
            )

        assert await service.is_admin(group_id, bob.id)
        assert await _admin_count(service, group_id) == 2

    async def test_refused_promotion_skips_rename(self, db_session, trio_group, carol):
        """Test a member renaming themself while self-promoting changes nothing."""
        group_id = trio_group.id
        service = GroupService(db_session)

        with pytest.raises(ForbiddenError):
            await service.update_member(
                group_id, carol, carol.id, is_admin=True, nickname="CC", update_nickname=True
            )

        member = next(m for m in await service.members_of(group_id) if m.user_id == carol.id)
        assert member.nickname is None
        assert member.is_admin is False


class TestNicknamesAndQueries:
    """Test nicknames, group lookup and listing."""

    async def test_member_sets_own_nickname(self, db_session, trio_group, carol):
        """Test a member may rename themself inside the group."""
        service = GroupService(db_session)

        group = await service.set_nickname(trio_group.id, carol, carol.id, "CC")

        member = next(m for m in group.members if m.user_id == carol.id)
        assert member.display_name == "CC"

    async def test_nickname_cleared_with_none(self, db_session, trio_group, alice, carol):
        """Test an admin can clear a nickname."""
        service = GroupService(db_session)
        await service.set_nickname(trio_group.id, carol, carol.id, "CC")

        group = await service.set_nickname(trio_group.id, alice, carol.id, None)

        member = next(m for m in group.members if m.user_id == carol.id)
        assert member.nickname is None
        assert member.display_name == "Carol Chen"

    async def test_member_cannot_rename_others(self, db_session, trio_group, carol, alice):
        """Test a regular member cannot rename someone else."""
        service = GroupService(db_session)

        with pytest.raises(ForbiddenError):
            await service.set_nickname(trio_group.id, carol, alice.id, "Boss")

    async def test_get_group_members_only(self, db_session, approved_group, alice, dave):
        """Test members see the group and outsiders are Forbidden."""
        service = GroupService(db_session)

        group = await service.get_group(approved_group.id, alice)
        assert group.id == approved_group.id

        with pytest.raises(ForbiddenError):
            await service.get_group(approved_group.id, dave)
        with pytest.raises(NotFoundError):
            await service.get_group(next_id(), alice)

    async def test_list_groups(self, db_session, approved_group, alice, bob, carol):
        """Test listing returns only the user's groups, newest first."""
        service = GroupService(db_session)
        ad_hoc = await service.create_ad_hoc(alice, "Later")

        assert [g.id for g in await service.list_groups(alice)] == [ad_hoc.id, approved_group.id]
        assert [g.id for g in await service.list_groups(bob)] == [approved_group.id]
        assert await service.list_groups(carol) == []
