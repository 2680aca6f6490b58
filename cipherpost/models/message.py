"""
Message and MessageContent models.

A Message is the logical envelope; MessageContent holds one opaque
ciphertext per recipient. Content is raw bytes encrypted client-side under
the recipient's public key and is never interpreted by the server.
"""
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKey, Index, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cipherpost.models.base import Base, SnowflakeIdMixin, TimestampMixin

if TYPE_CHECKING:
    from cipherpost.models.user import User


class Message(Base, SnowflakeIdMixin, TimestampMixin):
    """Logical message authored by ``source`` inside ``group``. Immutable once written."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("source_id", "idempotency_key", name="uq_messages_source_idempotency_key"),
    )

    group_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        doc="Group this message belongs to"
    )

    source_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=False,
        doc="User who sent the message"
    )

    idempotency_key: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Client-supplied key making retried sends safe"
    )

    # Relationships
    source: Mapped["User"] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, group_id={self.group_id}, source_id={self.source_id})>"


class MessageContent(Base):
    """
    Per-recipient ciphertext for a message.

    Exactly one row per (message, member at send time). The composite
    primary key makes a duplicate row impossible at the storage layer.
    """

    __tablename__ = "message_contents"

    message_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True,
        doc="Message ID"
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        primary_key=True,
        doc="Recipient user ID"
    )

    content: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
        doc="Opaque ciphertext addressed to the recipient"
    )

    def __repr__(self) -> str:
        # Content intentionally omitted
        return f"<MessageContent(message_id={self.message_id}, user_id={self.user_id})>"


# Indexes for performance
Index("idx_messages_group", Message.group_id, Message.id)
Index("idx_message_contents_user", MessageContent.user_id, MessageContent.message_id)
