"""
Group and GroupUser models.

A group is either born from an approved message request (seeded with both
parties as admins) or created ad hoc by a user who becomes its first admin.
"""
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import BigInteger, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cipherpost.models.base import Base, SnowflakeIdMixin, TimestampMixin

if TYPE_CHECKING:
    from cipherpost.models.message_request import MessageRequest
    from cipherpost.models.user import User


class Group(Base, SnowflakeIdMixin, TimestampMixin):
    """
    Conversation container.

    ``message_request_id`` is unique so an approved request can never spawn
    a second group, whatever the interleaving of approvals.
    """

    __tablename__ = "groups"

    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Group name (null for request-born groups)"
    )

    message_request_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("message_requests.id"),
        unique=True,
        nullable=True,
        doc="Request this group was created from"
    )

    # Relationships
    members: Mapped[List["GroupUser"]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GroupUser.id"
    )

    message_request: Mapped[Optional["MessageRequest"]] = relationship(lazy="selectin")

    @property
    def display_name(self) -> str:
        """Group name, falling back to the comma-joined names of its members."""
        if self.name:
            return self.name
        return ", ".join(member.user.name for member in self.members if member.user)

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name}, message_request_id={self.message_request_id})>"


class GroupUser(Base, SnowflakeIdMixin, TimestampMixin):
    """
    Group membership.

    Tracks the admin flag and an optional per-group nickname.
    """

    __tablename__ = "group_users"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_users_group_user"),
    )

    group_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        doc="Group ID"
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="User ID"
    )

    is_admin: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
        doc="Whether the member may manage membership"
    )

    nickname: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Name shown for this member inside the group"
    )

    # Relationships
    group: Mapped["Group"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship(back_populates="memberships", lazy="selectin")

    @property
    def display_name(self) -> str:
        """Nickname inside the group, else the user's own name."""
        return self.nickname or self.user.name

    def __repr__(self) -> str:
        return (
            f"<GroupUser(group_id={self.group_id}, "
            f"user_id={self.user_id}, is_admin={self.is_admin})>"
        )


# Indexes for performance
Index("idx_group_users_user", GroupUser.user_id)
