"""
Authentication schemas.

Magic-link requests, the resolved caller identity and the /auth/me view.
"""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator


# ---------------------------------------------------------------------------
# Identity (resolved by the session dependency, never read from a body)
# ---------------------------------------------------------------------------

class CurrentIdentity(BaseModel):
    """The authenticated caller."""

    email: str
    name: str | None = None
    jti: str | None = Field(default=None, description="Session JTI when signed in by magic link")
    session_expires_at: int | None = Field(default=None, description="Session exp (unix seconds)")
    idp_access_token: str | None = Field(
        default=None, description="ZITADEL access token when signed in via the identity provider"
    )


# ---------------------------------------------------------------------------
# Magic link
# ---------------------------------------------------------------------------

class MagicLinkRequest(BaseModel):
    """Request body for POST /auth/magic/request."""

    email: EmailStr
    invite_token: str | None = Field(default=None, alias="inviteToken", max_length=64)

    model_config = {"populate_by_name": True}

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class MagicLinkRequestResponse(BaseModel):
    """Response for POST /auth/magic/request."""

    message: str
    magic_link: str | None = Field(
        default=None, description="Only returned in DEBUG when no email provider is configured"
    )


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

class MembershipSummary(BaseModel):
    organization_id: str
    organization_name: str
    role: str


class MeResponse(BaseModel):
    """Response for GET /auth/me: current identity with org memberships."""

    email: str
    name: str | None
    auth_method: str
    organizations: list[MembershipSummary]
