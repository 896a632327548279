"""
Admin event-management endpoints.

Owner or admin only; every id is checked against the caller's organization.
"""

from __future__ import annotations

from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.database import get_db
from volunteer_hub.core.dependencies import get_http_client, require_role
from volunteer_hub.models.member import OrgMember, OrgRole
from volunteer_hub.models.organization import Organization
from volunteer_hub.schemas.admin import (
    AdminMessageResponse,
    AdminSignupListResponse,
    DeleteRequest,
    DuplicateEventRequest,
    DuplicateEventResponse,
    EventCreateRequest,
    EventResponse,
    EventUpdateRequest,
    ListCreateRequest,
    ListResponse,
    ListUpdateRequest,
    LockAllRequest,
    ManualReminderRequest,
    ManualReminderResponse,
    NotifyRequest,
    ReminderSettingsRequest,
    ReminderSettingsResponse,
    ReorderEventsRequest,
    ReorderListsRequest,
    SendCountsResponse,
)
from volunteer_hub.services.event_service import EventService
from volunteer_hub.services.notification_service import NotificationService
from volunteer_hub.services.reminder_settings_service import ReminderSettingsService
from volunteer_hub.services.sms_service import SmsService

router = APIRouter()

AdminContext = tuple[Organization, OrgMember]


def get_event_service(db: AsyncSession = Depends(get_db)) -> EventService:
    """Dependency that constructs EventService."""
    return EventService(db=db)


def get_notification_service(
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> NotificationService:
    """Dependency that constructs NotificationService."""
    return NotificationService(db=db, sms=SmsService(db=db, client=client))


def get_reminder_settings_service(db: AsyncSession = Depends(get_db)) -> ReminderSettingsService:
    return ReminderSettingsService(db=db)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@router.get(
    "/events",
    response_model=list[EventResponse],
    summary="List upcoming and undated events",
)
async def list_events(
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> list[EventResponse]:
    org, _ = org_and_member
    return await service.list_events(org.id)


@router.post(
    "/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an event",
)
async def create_event(
    data: EventCreateRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> EventResponse:
    """The slug must be unique within the organization (409 otherwise)."""
    org, _ = org_and_member
    return await service.create_event(org.id, data)


@router.patch(
    "/events",
    response_model=EventResponse,
    summary="Update an event",
)
async def update_event(
    data: EventUpdateRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> EventResponse:
    org, _ = org_and_member
    return await service.update_event(org.id, data)


@router.delete(
    "/events",
    response_model=AdminMessageResponse,
    summary="Delete an event with its lists and signups",
)
async def delete_event(
    data: DeleteRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> AdminMessageResponse:
    org, _ = org_and_member
    return await service.delete_event(org.id, data.id)


@router.post(
    "/duplicate-event",
    response_model=DuplicateEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Copy an event and its lists",
)
async def duplicate_event(
    data: DuplicateEventRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> DuplicateEventResponse:
    org, _ = org_and_member
    return await service.duplicate_event(org.id, data.event_id)


@router.post(
    "/events/reorder",
    response_model=AdminMessageResponse,
    summary="Reorder events",
)
async def reorder_events(
    data: ReorderEventsRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> AdminMessageResponse:
    """All ids must belong to the caller's organization, or nothing changes (404)."""
    org, _ = org_and_member
    return await service.reorder_events(org.id, data.event_ids)


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------

@router.get(
    "/lists",
    response_model=list[ListResponse],
    summary="List an event's volunteer lists",
)
async def list_lists(
    event_id: UUID = Query(),
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> list[ListResponse]:
    org, _ = org_and_member
    return await service.list_lists(org.id, event_id)


@router.post(
    "/lists",
    response_model=ListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a list",
)
async def create_list(
    data: ListCreateRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> ListResponse:
    org, _ = org_and_member
    return await service.create_list(org.id, data)


@router.patch(
    "/lists",
    response_model=ListResponse,
    summary="Update a list",
)
async def update_list(
    data: ListUpdateRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> ListResponse:
    org, _ = org_and_member
    return await service.update_list(org.id, data)


@router.delete(
    "/lists",
    response_model=AdminMessageResponse,
    summary="Delete a list with its signups",
)
async def delete_list(
    data: DeleteRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> AdminMessageResponse:
    org, _ = org_and_member
    return await service.delete_list(org.id, data.id)


@router.get(
    "/lists/{list_id}/signups",
    response_model=AdminSignupListResponse,
    summary="Signups of a list with reminder status",
)
async def list_signups(
    list_id: UUID,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> AdminSignupListResponse:
    org, _ = org_and_member
    return await service.list_signups(org.id, list_id)


@router.post(
    "/lists/reorder",
    response_model=AdminMessageResponse,
    summary="Reorder lists",
)
async def reorder_lists(
    data: ReorderListsRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> AdminMessageResponse:
    org, _ = org_and_member
    return await service.reorder_lists(org.id, data.list_ids)


@router.post(
    "/lists/lock-all",
    response_model=AdminMessageResponse,
    summary="Lock or unlock every list of an event",
)
async def lock_all_lists(
    data: LockAllRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: EventService = Depends(get_event_service),
) -> AdminMessageResponse:
    org, _ = org_and_member
    return await service.lock_all(org.id, data.event_id, data.locked)


# ---------------------------------------------------------------------------
# SMS
# ---------------------------------------------------------------------------

@router.post(
    "/sms/notify",
    response_model=SendCountsResponse,
    summary="Text an event's volunteers about a cancellation or change",
)
async def notify_volunteers(
    data: NotifyRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: NotificationService = Depends(get_notification_service),
) -> SendCountsResponse:
    """
    Only volunteers with a phone, SMS consent and no opt-out are texted.
    `message` is required for type "change".
    """
    org, _ = org_and_member
    if data.type == "cancellation":
        return await service.notify_cancellation(org.id, data.event_id)
    return await service.notify_change(org.id, data.event_id, data.message)


@router.post(
    "/reminders/send",
    response_model=ManualReminderResponse,
    summary="Send reminders now for a signup, list or event",
)
async def send_reminders(
    data: ManualReminderRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: NotificationService = Depends(get_notification_service),
) -> ManualReminderResponse:
    org, _ = org_and_member
    return await service.send_manual_reminders(org.id, data)


@router.get(
    "/reminder-settings",
    response_model=ReminderSettingsResponse,
    summary="Effective reminder settings for the organization or an event",
)
async def get_reminder_settings(
    event_id: UUID | None = Query(default=None, alias="eventId"),
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: ReminderSettingsService = Depends(get_reminder_settings_service),
) -> ReminderSettingsResponse:
    org, _ = org_and_member
    return await service.get(org.id, event_id)


@router.post(
    "/reminder-settings",
    response_model=ReminderSettingsResponse,
    summary="Save reminder settings for the organization or an event",
)
async def save_reminder_settings(
    data: ReminderSettingsRequest,
    org_and_member: AdminContext = Depends(require_role(OrgRole.admin)),
    service: ReminderSettingsService = Depends(get_reminder_settings_service),
) -> ReminderSettingsResponse:
    org, _ = org_and_member
    return await service.save(org.id, data)
