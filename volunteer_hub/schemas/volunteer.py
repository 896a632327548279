"""
Volunteer self-service ("manage my signups") schemas.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ManagedSignup(BaseModel):
    id: UUID
    name: str
    role_title: str
    signed_up_at: datetime
    confirmed_at: datetime | None


class ManagedEvent(BaseModel):
    event_id: UUID
    event_title: str
    event_date: date | None
    coordinator_name: str | None = None
    coordinator_phone: str | None = None
    signups: list[ManagedSignup]


class ManageViewResponse(BaseModel):
    """Response for GET /volunteer/manage/{token}."""

    phone: str = Field(description="Masked phone number")
    events: list[ManagedEvent]


class ConfirmSignupRequest(BaseModel):
    signup_id: UUID = Field(alias="signupId")

    model_config = {"populate_by_name": True}


class CancelSignupRequest(BaseModel):
    signup_id: UUID = Field(alias="signupId")
    reason: str | None = Field(default=None, max_length=500)

    model_config = {"populate_by_name": True}


class ManageActionResponse(BaseModel):
    success: bool = True
    message: str
