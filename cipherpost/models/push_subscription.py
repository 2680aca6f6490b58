"""
Push subscription model for device notifications.
"""
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cipherpost.models.base import Base, SnowflakeIdMixin, TimestampMixin

if TYPE_CHECKING:
    from cipherpost.models.user import User


class UserPushSubscription(Base, SnowflakeIdMixin, TimestampMixin):
    """
    A registered delivery endpoint of one device.

    A user may hold several. Rows are removed on explicit unsubscribe or when
    the push channel reports the endpoint gone, and are otherwise immutable.
    """

    __tablename__ = "user_push_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscriptions_user_endpoint"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Subscription owner"
    )

    endpoint: Mapped[str] = mapped_column(Text, nullable=False, doc="Push service endpoint URL")
    p256dh: Mapped[str] = mapped_column(String(255), nullable=False, doc="Client public key")
    auth: Mapped[str] = mapped_column(String(255), nullable=False, doc="Client auth secret")

    # Relationships
    user: Mapped["User"] = relationship(back_populates="push_subscriptions")

    def __repr__(self) -> str:
        return f"<UserPushSubscription(id={self.id}, user_id={self.user_id})>"
