"""
Base model classes and mixins for SQLAlchemy ORM.
Provides common functionality for all database models.
"""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cipherpost.core.ids import next_id
from cipherpost.utils.datetime_utils import utc_now


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Includes AsyncAttrs mixin for async relationship access.
    All models should inherit from this class.
    """
    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="Timestamp when the record was created"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
        doc="Timestamp when the record was last updated"
    )


class SnowflakeIdMixin:
    """
    Mixin for an application-allocated 64-bit primary key.

    Ids come from the snowflake allocator, never from a storage sequence,
    so they are known before the row is flushed and sort by creation time.
    """

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        default=next_id,
        doc="Time-sortable snowflake id"
    )
