"""
MessageRequest model.

A directed contact proposal from source to destination. It is created
pending and approved at most once by the destination. There is no
rejected state: an unwanted request simply stays pending.
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cipherpost.models.base import Base, SnowflakeIdMixin, TimestampMixin

if TYPE_CHECKING:
    from cipherpost.models.user import User


class MessageRequestStatus(str, enum.Enum):
    """The two states of a message request."""
    PENDING = "pending"
    APPROVED = "approved"


PENDING_CLAUSE = text("approved_at IS NULL")


class MessageRequest(Base, SnowflakeIdMixin, TimestampMixin):
    """Message request model."""

    __tablename__ = "message_requests"
    __table_args__ = (
        CheckConstraint("source_id <> destination_id", name="ck_message_requests_not_self"),
        # At most one unresolved request per ordered pair
        Index(
            "uq_message_requests_pending_pair",
            "source_id",
            "destination_id",
            unique=True,
            postgresql_where=PENDING_CLAUSE,
            sqlite_where=PENDING_CLAUSE,
        ),
        Index("idx_message_requests_destination", "destination_id"),
    )

    source_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=False,
        doc="User who proposed contact"
    )

    destination_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=False,
        doc="User who may approve"
    )

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Approval timestamp (null while pending)"
    )

    # Relationships
    source: Mapped["User"] = relationship(foreign_keys=[source_id], lazy="selectin")
    destination: Mapped["User"] = relationship(foreign_keys=[destination_id], lazy="selectin")

    @property
    def status(self) -> MessageRequestStatus:
        if self.approved_at is None:
            return MessageRequestStatus.PENDING
        return MessageRequestStatus.APPROVED

    @property
    def is_approved(self) -> bool:
        return self.approved_at is not None

    def __repr__(self) -> str:
        return (
            f"<MessageRequest(id={self.id}, source_id={self.source_id}, "
            f"destination_id={self.destination_id}, status={self.status.value})>"
        )
