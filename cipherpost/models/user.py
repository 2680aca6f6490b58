"""
User model - canonical identity record.

Created on first enrollment after the identity provider has authenticated
the user. The public key is what peers encrypt message content with.
"""
from typing import TYPE_CHECKING, List

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cipherpost.models.base import Base, SnowflakeIdMixin, TimestampMixin

if TYPE_CHECKING:
    from cipherpost.models.group import GroupUser
    from cipherpost.models.push_subscription import UserPushSubscription


class User(Base, SnowflakeIdMixin, TimestampMixin):
    """User model. Identity, email and phone number are globally unique."""

    __tablename__ = "users"

    sub: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        doc="Subject identifier issued by the identity provider"
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        doc="Email handle"
    )

    phone_number: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        doc="Phone handle"
    )

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)

    display_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Optional name overriding first/last name"
    )

    public_key: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Public key peers encrypt content with; rotation does not re-encrypt history"
    )

    # Relationships
    memberships: Mapped[List["GroupUser"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    push_subscriptions: Mapped[List["UserPushSubscription"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    @property
    def name(self) -> str:
        """Display name, falling back to first and last name."""
        if self.display_name:
            return self.display_name
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, sub={self.sub})>"
