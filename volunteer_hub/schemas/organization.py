"""
Organization, membership and invite schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from volunteer_hub.models.member import MemberStatus, OrgRole


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

class OrganizationSetupRequest(BaseModel):
    """Request body for POST /onboarding/setup-org."""

    name: str = Field(min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=2000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Organization name is required")
        return v


class OrganizationResponse(BaseModel):
    """Public organization representation."""

    id: UUID
    name: str
    slug: str
    public_id: str
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrganizationSetupResponse(BaseModel):
    message: str
    organization: OrganizationResponse


class SetupStatusResponse(BaseModel):
    needs_setup: bool
    organizations: list[OrganizationResponse]


class OrgContextResponse(BaseModel):
    """Response for GET /org/context."""

    organization_id: UUID
    organization_public_id: str
    organization_name: str
    user_email: str
    user_role: str


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberResponse(BaseModel):
    """One membership row (active member or pending invite)."""

    id: UUID
    user_email: str
    user_name: str | None
    role: OrgRole
    status: MemberStatus
    invited_by: str | None
    invited_at: datetime
    joined_at: datetime | None
    token_expires_at: datetime | None

    model_config = {"from_attributes": True}


class MembersListResponse(BaseModel):
    members: list[MemberResponse]
    total: int


class MemberRoleUpdateRequest(BaseModel):
    """Request body for PATCH /admin/members."""

    email: EmailStr
    role: Literal["admin", "member"]


class MemberRemoveRequest(BaseModel):
    """Request body for DELETE /admin/members."""

    email: EmailStr


class MemberMutationResponse(BaseModel):
    message: str
    member: MemberResponse


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------

class InviteSendRequest(BaseModel):
    """Request body for POST /invites/send."""

    email: EmailStr
    role: str = "member"
    name: str | None = Field(default=None, max_length=100)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class InviteLink(BaseModel):
    email: str
    role: str
    sign_in_url: str
    expires_at: datetime | None


class InviteSendResponse(BaseModel):
    message: str
    invite: InviteLink


class InviteOrganization(BaseModel):
    name: str
    description: str | None


class InviteInfoResponse(BaseModel):
    """Public info about an invite (shown before accepting)."""

    organization: InviteOrganization
    email: str
    role: str
    invited_by: str | None
    invited_at: datetime


class InviteActionRequest(BaseModel):
    """Request body for POST /invites/{token}."""

    action: Literal["accept", "decline"]


class InviteActionResponse(BaseModel):
    message: str
    organization_id: UUID | None = None
