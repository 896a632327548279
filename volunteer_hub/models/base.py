"""
Declarative base and shared column mixins.

Organizations, events and lists carry created/updated timestamps; rows
written once (tokens, signups, SMS log) declare their own created_at.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """created_at on insert, updated_at on every ORM update. Both UTC."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDMixin:
    """UUID primary key. Ids appear in public URLs, so they are never sequential."""

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
