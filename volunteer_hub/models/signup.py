"""
VolunteerSignup ORM model.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from volunteer_hub.models.base import Base, UUIDMixin

if TYPE_CHECKING:
    from volunteer_hub.models.event import VolunteerList


class VolunteerSignup(Base, UUIDMixin):
    """One person on one volunteer list."""

    __tablename__ = "volunteer_signups"

    list_id: Mapped[UUID] = mapped_column(
        ForeignKey("volunteer_lists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # SMS preferences
    sms_consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sms_opted_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Self-service lifecycle
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_via: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Reminder tracking
    last_reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reminder_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    volunteer_list: Mapped[VolunteerList] = relationship(
        "VolunteerList", back_populates="signups"
    )

    def __repr__(self) -> str:
        return f"<VolunteerSignup id={self.id} list_id={self.list_id} name={self.name!r}>"
