"""
VolunteerEvent and VolunteerList ORM models.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from volunteer_hub.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from volunteer_hub.models.organization import Organization
    from volunteer_hub.models.signup import VolunteerSignup


class VolunteerEvent(Base, UUIDMixin, TimestampMixin):
    """A dated (or open-ended) event that volunteers sign up for."""

    __tablename__ = "volunteer_events"
    __table_args__ = (
        UniqueConstraint("organization_id", "slug", name="uq_event_org_slug"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    slug: Mapped[str] = mapped_column(String(120), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Relationships
    organization: Mapped[Organization] = relationship(
        "Organization", back_populates="events"
    )
    lists: Mapped[list[VolunteerList]] = relationship(
        "VolunteerList",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="VolunteerList.position",
    )

    def __repr__(self) -> str:
        return f"<VolunteerEvent id={self.id} slug={self.slug!r}>"


class VolunteerList(Base, UUIDMixin, TimestampMixin):
    """A role or shift inside an event with an optional slot limit."""

    __tablename__ = "volunteer_lists"

    event_id: Mapped[UUID] = mapped_column(
        ForeignKey("volunteer_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    max_slots: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    event: Mapped[VolunteerEvent] = relationship("VolunteerEvent", back_populates="lists")
    signups: Mapped[list[VolunteerSignup]] = relationship(
        "VolunteerSignup",
        back_populates="volunteer_list",
        cascade="all, delete-orphan",
        order_by="VolunteerSignup.position",
    )

    def __repr__(self) -> str:
        return f"<VolunteerList id={self.id} title={self.title!r} locked={self.is_locked}>"
