"""
SmsMessage ORM model (outbound SMS log).
"""

from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from volunteer_hub.models.base import Base, UUIDMixin


class SmsStatus(str, enum.Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


class SmsMessageType(str, enum.Enum):
    confirmation = "confirmation"
    reminder = "reminder"
    cancellation = "cancellation"
    change = "change"


class SmsMessage(Base, UUIDMixin):
    """Every outbound SMS attempt, used for auditing and duplicate suppression."""

    __tablename__ = "sms_messages"

    to_phone: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[SmsStatus] = mapped_column(
        Enum(SmsStatus, name="sms_status", native_enum=False),
        nullable=False,
        default=SmsStatus.pending,
    )
    message_type: Mapped[SmsMessageType] = mapped_column(
        Enum(SmsMessageType, name="sms_message_type", native_enum=False),
        nullable=False,
        default=SmsMessageType.confirmation,
    )
    text_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    signup_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("volunteer_signups.id", ondelete="SET NULL"), nullable=True, index=True
    )
    event_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("volunteer_events.id", ondelete="SET NULL"), nullable=True
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<SmsMessage id={self.id} to={self.to_phone!r} status={self.status}>"
