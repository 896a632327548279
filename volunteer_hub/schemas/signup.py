"""
Public sign-up schemas.

Request bodies accept the camelCase names used by the web client as well
as snake_case; responses are snake_case.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


# ---------------------------------------------------------------------------
# Public event view
# ---------------------------------------------------------------------------

class PublicSignup(BaseModel):
    id: UUID
    name: str
    position: int

    model_config = {"from_attributes": True}


class PublicList(BaseModel):
    id: UUID
    title: str
    description: str | None
    max_slots: int | None
    is_locked: bool
    position: int
    signup_count: int
    is_full: bool
    signups: list[PublicSignup]


class PublicEvent(BaseModel):
    id: UUID
    slug: str
    title: str
    description: str | None
    event_date: date | None
    is_active: bool

    model_config = {"from_attributes": True}


class PublicEventResponse(BaseModel):
    """Response for GET /signup/{orgId}/{slug}."""

    event: PublicEvent
    lists: list[PublicList]


# ---------------------------------------------------------------------------
# Add / remove
# ---------------------------------------------------------------------------

class SignupAddRequest(BaseModel):
    """Request body for POST /signup/add."""

    list_id: UUID = Field(alias="listId")
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=32)
    sms_consent: bool = Field(default=False, alias="smsConsent")

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class SignupRemoveRequest(BaseModel):
    """Request body for DELETE /signup/remove."""

    signup_id: UUID = Field(alias="signupId")

    model_config = {"populate_by_name": True}


class SignupResponse(BaseModel):
    id: UUID
    list_id: UUID
    name: str
    email: str | None
    phone: str | None
    position: int
    sms_consent: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SignupRemoveResponse(BaseModel):
    success: bool = True
