"""
OrgMember ORM model.

A row is either an active membership or a pending invite carrying its
own token; the invite becomes the membership when accepted.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from volunteer_hub.models.base import Base, UUIDMixin

if TYPE_CHECKING:
    from volunteer_hub.models.organization import Organization


class OrgRole(str, enum.Enum):
    """Organization member role enumeration."""

    owner = "owner"
    admin = "admin"
    member = "member"


ROLE_RANK: dict[OrgRole, int] = {
    OrgRole.owner: 3,
    OrgRole.admin: 2,
    OrgRole.member: 1,
}


class MemberStatus(str, enum.Enum):
    """Membership lifecycle: pending (invited) -> active."""

    pending = "pending"
    active = "active"


class OrgMember(Base, UUIDMixin):
    """Membership or pending invite linking an email to an organization."""

    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_email", name="uq_org_member_email"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[OrgRole] = mapped_column(
        Enum(OrgRole, name="org_role", native_enum=False), nullable=False
    )
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus, name="member_status", native_enum=False),
        nullable=False,
        default=MemberStatus.active,
    )
    invite_token: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True, index=True
    )
    token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    invited_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    organization: Mapped[Organization] = relationship(
        "Organization", back_populates="members"
    )

    def __repr__(self) -> str:
        return (
            f"<OrgMember organization_id={self.organization_id} "
            f"user_email={self.user_email!r} role={self.role} status={self.status}>"
        )
