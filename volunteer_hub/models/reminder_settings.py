"""
ReminderSettings ORM model.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from volunteer_hub.models.base import Base, TimestampMixin, UUIDMixin


class ReminderSettings(Base, UUIDMixin, TimestampMixin):
    """
    Reminder template and coordinator contact.

    A row with event_id NULL holds the organization default; a row with
    an event_id overrides it for that event.
    """

    __tablename__ = "reminder_settings"
    __table_args__ = (
        UniqueConstraint("organization_id", "event_id", name="uq_reminder_settings_org_event"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("volunteer_events.id", ondelete="CASCADE"), nullable=True, index=True
    )
    message_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    coordinator_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    coordinator_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ReminderSettings org={self.organization_id} event={self.event_id}>"
