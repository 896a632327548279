"""
Admin event-management schemas.

Request bodies accept the camelCase names used by the web client as well
as snake_case; responses are snake_case.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _clean_slug(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip().lower()
    if not _SLUG.match(v):
        raise ValueError("Slug may contain only lowercase letters, digits and single hyphens")
    return v


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class EventResponse(BaseModel):
    id: UUID
    organization_id: UUID
    slug: str
    title: str
    description: str | None
    event_date: date | None
    is_active: bool
    sort_order: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class EventCreateRequest(BaseModel):
    slug: str = Field(min_length=1, max_length=120)
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    event_date: date | None = Field(default=None, alias="eventDate")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = {"populate_by_name": True}

    @field_validator("slug")
    @classmethod
    def slug_is_url_safe(cls, v: str) -> str:
        return _clean_slug(v)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class EventUpdateRequest(BaseModel):
    """
    Request body for PATCH /admin/events.

    Only fields present in the body are changed; `eventDate: null`
    clears the date.
    """

    id: UUID
    slug: str | None = Field(default=None, min_length=1, max_length=120)
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    event_date: date | None = Field(default=None, alias="eventDate")
    is_active: bool | None = Field(default=None, alias="isActive")

    model_config = {"populate_by_name": True}

    @field_validator("slug")
    @classmethod
    def slug_is_url_safe(cls, v: str | None) -> str | None:
        return _clean_slug(v)


class DeleteRequest(BaseModel):
    id: UUID


class DuplicateEventRequest(BaseModel):
    """Request body for POST /admin/duplicate-event."""

    event_id: UUID = Field(alias="eventId")

    model_config = {"populate_by_name": True}


class DuplicateEventResponse(BaseModel):
    message: str
    event: EventResponse
    lists_copied: int


class ReorderEventsRequest(BaseModel):
    """Request body for POST /admin/events/reorder: ids in their new order."""

    event_ids: list[UUID] = Field(alias="eventIds")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------

class ListResponse(BaseModel):
    id: UUID
    event_id: UUID
    title: str
    description: str | None
    max_slots: int | None
    is_locked: bool
    position: int
    signup_count: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}


class ListCreateRequest(BaseModel):
    event_id: UUID = Field(alias="eventId")
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    max_slots: int | None = Field(default=None, ge=1, alias="maxSlots")
    is_locked: bool = Field(default=False, alias="isLocked")

    model_config = {"populate_by_name": True}


class ListUpdateRequest(BaseModel):
    """Request body for PATCH /admin/lists. `maxSlots: null` removes the limit."""

    id: UUID
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    max_slots: int | None = Field(default=None, ge=1, alias="maxSlots")
    is_locked: bool | None = Field(default=None, alias="isLocked")

    model_config = {"populate_by_name": True}


class ReorderListsRequest(BaseModel):
    """Request body for POST /admin/lists/reorder: ids in their new order."""

    list_ids: list[UUID] = Field(alias="listIds")

    model_config = {"populate_by_name": True}


class LockAllRequest(BaseModel):
    """Request body for POST /admin/lists/lock-all."""

    event_id: UUID = Field(alias="eventId")
    locked: bool

    model_config = {"populate_by_name": True}


ReminderStatus = Literal["sent", "pending", "failed", "no_phone", "opted_out", "no_consent"]


class AdminSignup(BaseModel):
    id: UUID
    name: str
    phone: str | None
    email: str | None
    sms_consent: bool
    sms_opted_out: bool
    signed_up_at: datetime
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    reminder_status: ReminderStatus
    last_reminder_sent_at: datetime | None
    reminder_error: str | None
    reminder_count: int


class AdminSignupListResponse(BaseModel):
    """Response for GET /admin/lists/{list_id}/signups."""

    signups: list[AdminSignup]


class AdminMessageResponse(BaseModel):
    message: str
    updated: int


# ---------------------------------------------------------------------------
# SMS notifications and reminders
# ---------------------------------------------------------------------------

class NotifyRequest(BaseModel):
    """Request body for POST /admin/sms/notify."""

    event_id: UUID = Field(alias="eventId")
    type: Literal["cancellation", "change"]
    message: str | None = Field(default=None, max_length=300)

    model_config = {"populate_by_name": True}


class SendCountsResponse(BaseModel):
    success: bool = True
    sent: int
    failed: int


class ManualReminderRequest(BaseModel):
    """
    Request body for POST /admin/reminders/send.

    The most specific id wins: signupId, then listId, then eventId.
    """

    signup_id: UUID | None = Field(default=None, alias="signupId")
    list_id: UUID | None = Field(default=None, alias="listId")
    event_id: UUID | None = Field(default=None, alias="eventId")

    model_config = {"populate_by_name": True}


class ManualReminderResult(BaseModel):
    signup_id: UUID
    name: str
    status: Literal["sent", "skipped", "failed"]
    error: str | None = None


class ManualReminderResponse(BaseModel):
    success: bool = True
    sent: int
    failed: int
    skipped: int
    total: int
    results: list[ManualReminderResult]


class ReminderRunResponse(BaseModel):
    """Response for GET /cron/send-reminders."""

    success: bool = True
    sent: int
    failed: int
    skipped: int
    total: int


class ReminderSettingsRequest(BaseModel):
    """Request body for POST /admin/reminder-settings. Omitted fields keep their value."""

    event_id: UUID | None = Field(default=None, alias="eventId")
    message_template: str | None = Field(default=None, max_length=480, alias="messageTemplate")
    coordinator_name: str | None = Field(default=None, max_length=100, alias="coordinatorName")
    coordinator_phone: str | None = Field(default=None, max_length=30, alias="coordinatorPhone")
    enabled: bool | None = None

    model_config = {"populate_by_name": True}


class ReminderSettingsResponse(BaseModel):
    id: UUID | None
    organization_id: UUID
    event_id: UUID | None
    message_template: str
    coordinator_name: str | None
    coordinator_phone: str | None
    enabled: bool
    is_default: bool
