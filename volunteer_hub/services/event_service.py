"""
Admin event and list management.

Multi-row operations validate every id against the caller's organization
first and then write inside one transaction, so a bad id changes nothing.
"""

from __future__ import annotations

import logging
import time
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.database import transaction
from volunteer_hub.core.security import utcnow
from volunteer_hub.models.event import VolunteerEvent, VolunteerList
from volunteer_hub.models.reminder_settings import ReminderSettings
from volunteer_hub.models.signup import VolunteerSignup
from volunteer_hub.models.sms import SmsMessage, SmsMessageType, SmsStatus
from volunteer_hub.schemas.admin import (
    AdminMessageResponse,
    AdminSignup,
    AdminSignupListResponse,
    DuplicateEventResponse,
    EventCreateRequest,
    EventResponse,
    EventUpdateRequest,
    ListCreateRequest,
    ListResponse,
    ListUpdateRequest,
    ReminderStatus,
)

logger = logging.getLogger(__name__)


def _event_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "EVENT_NOT_FOUND", "message": "Event not found"},
    )


def _list_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "LIST_NOT_FOUND", "message": "List not found"},
    )


def _slug_taken(slug: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"code": "EVENT_SLUG_TAKEN", "message": f"An event with slug '{slug}' already exists"},
    )


def _reject_duplicates(ids: list[UUID]) -> None:
    if len(set(ids)) != len(ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "DUPLICATE_IDS", "message": "Each id may appear only once"},
        )


def reminder_status(signup: VolunteerSignup, last_reminder: SmsMessage | None) -> ReminderStatus:
    """Whether a signup can be, or has been, reached by a reminder."""
    if not signup.phone:
        return "no_phone"
    if signup.sms_opted_out:
        return "opted_out"
    if not signup.sms_consent:
        return "no_consent"
    if last_reminder is not None:
        if last_reminder.status == SmsStatus.sent:
            return "sent"
        if last_reminder.status == SmsStatus.failed:
            return "failed"
        return "pending"
    # Grouped reminders are logged against one signup of the group only
    return "sent" if signup.last_reminder_sent_at else "pending"


class EventService:
    """Handles admin event operations. All queries scoped by organization_id."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get_event(self, org_id: UUID, event_id: UUID) -> VolunteerEvent:
        result = await self.db.execute(
            select(VolunteerEvent).where(
                VolunteerEvent.id == event_id,
                VolunteerEvent.organization_id == org_id,
            )
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise _event_not_found()
        return event

    async def _get_list(self, org_id: UUID, list_id: UUID) -> VolunteerList:
        result = await self.db.execute(
            select(VolunteerList)
            .join(VolunteerEvent, VolunteerList.event_id == VolunteerEvent.id)
            .where(
                VolunteerList.id == list_id,
                VolunteerEvent.organization_id == org_id,
            )
        )
        volunteer_list = result.scalar_one_or_none()
        if volunteer_list is None:
            raise _list_not_found()
        return volunteer_list

    async def _ensure_slug_free(self, org_id: UUID, slug: str, exclude_id: UUID | None = None) -> None:
        stmt = select(VolunteerEvent.id).where(
            VolunteerEvent.organization_id == org_id,
            VolunteerEvent.slug == slug,
        )
        if exclude_id is not None:
            stmt = stmt.where(VolunteerEvent.id != exclude_id)
        if (await self.db.execute(stmt)).first() is not None:
            raise _slug_taken(slug)

    async def _active_signup_count(self, list_id: UUID) -> int:
        count = await self.db.scalar(
            select(func.count(VolunteerSignup.id)).where(
                VolunteerSignup.list_id == list_id,
                VolunteerSignup.cancelled_at.is_(None),
            )
        )
        return count or 0

    # -----------------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------------

    async def list_events(self, org_id: UUID) -> list[EventResponse]:
        """
        Upcoming and undated events.

        Ordered by sort_order (unset last), then date (undated first),
        then newest first.
        """
        result = await self.db.execute(
            select(VolunteerEvent)
            .where(
                VolunteerEvent.organization_id == org_id,
                or_(VolunteerEvent.event_date.is_(None), VolunteerEvent.event_date >= utcnow().date()),
            )
            .order_by(
                VolunteerEvent.sort_order.is_(None),
                VolunteerEvent.sort_order,
                VolunteerEvent.event_date.is_not(None),
                VolunteerEvent.event_date,
                VolunteerEvent.created_at.desc(),
            )
        )
        return [EventResponse.model_validate(e) for e in result.scalars().all()]

    async def create_event(self, org_id: UUID, data: EventCreateRequest) -> EventResponse:
        await self._ensure_slug_free(org_id, data.slug)
        event = VolunteerEvent(
            organization_id=org_id,
            slug=data.slug,
            title=data.title,
            description=data.description,
            event_date=data.event_date,
            is_active=data.is_active,
        )
        self.db.add(event)
        await self.db.flush()
        await self.db.refresh(event)
        logger.info("Event %s (%s) created in org %s", event.id, event.slug, org_id)
        return EventResponse.model_validate(event)

    async def update_event(self, org_id: UUID, data: EventUpdateRequest) -> EventResponse:
        event = await self._get_event(org_id, data.id)
        changes = data.model_dump(exclude_unset=True, exclude={"id"})

        if changes.get("slug") and changes["slug"] != event.slug:
            await self._ensure_slug_free(org_id, changes["slug"], exclude_id=event.id)

        for field, value in changes.items():
            # Only description and event_date may be cleared
            if value is None and field not in ("description", "event_date"):
                continue
            setattr(event, field, value)
        await self.db.flush()
        await self.db.refresh(event)
        return EventResponse.model_validate(event)

    async def delete_event(self, org_id: UUID, event_id: UUID) -> AdminMessageResponse:
        """Delete an event with its lists and signups."""
        event = await self._get_event(org_id, event_id)
        await self.db.execute(
            delete(ReminderSettings)
            .where(ReminderSettings.event_id == event.id)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.delete(event)
        await self.db.flush()
        logger.info("Event %s deleted from org %s", event_id, org_id)
        return AdminMessageResponse(message="Event deleted", updated=1)

    # -----------------------------------------------------------------------
    # Lists
    # -----------------------------------------------------------------------

    async def list_lists(self, org_id: UUID, event_id: UUID) -> list[ListResponse]:
        event = await self._get_event(org_id, event_id)
        signup_count = (
            select(func.count(VolunteerSignup.id))
            .where(
                VolunteerSignup.list_id == VolunteerList.id,
                VolunteerSignup.cancelled_at.is_(None),
            )
            .correlate(VolunteerList)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(VolunteerList, signup_count)
            .where(VolunteerList.event_id == event.id)
            .order_by(VolunteerList.position)
        )
        return [
            ListResponse.model_validate(vl).model_copy(update={"signup_count": count})
            for vl, count in result.all()
        ]

    async def create_list(self, org_id: UUID, data: ListCreateRequest) -> ListResponse:
        """Append a list to an event; it takes the next free position."""
        event = await self._get_event(org_id, data.event_id)
        max_position = await self.db.scalar(
            select(func.max(VolunteerList.position)).where(VolunteerList.event_id == event.id)
        )
        volunteer_list = VolunteerList(
            event_id=event.id,
            title=data.title.strip(),
            description=data.description,
            max_slots=data.max_slots,
            is_locked=data.is_locked,
            position=0 if max_position is None else max_position + 1,
        )
        self.db.add(volunteer_list)
        await self.db.flush()
        await self.db.refresh(volunteer_list)
        logger.info("List %s created for event %s", volunteer_list.id, event.id)
        return ListResponse.model_validate(volunteer_list)

    async def update_list(self, org_id: UUID, data: ListUpdateRequest) -> ListResponse:
        volunteer_list = await self._get_list(org_id, data.id)
        changes = data.model_dump(exclude_unset=True, exclude={"id"})

        for field, value in changes.items():
            # Only description and max_slots may be cleared
            if value is None and field not in ("description", "max_slots"):
                continue
            setattr(volunteer_list, field, value)
        await self.db.flush()
        await self.db.refresh(volunteer_list)
        return ListResponse.model_validate(volunteer_list).model_copy(
            update={"signup_count": await self._active_signup_count(volunteer_list.id)}
        )

    async def delete_list(self, org_id: UUID, list_id: UUID) -> AdminMessageResponse:
        volunteer_list = await self._get_list(org_id, list_id)
        await self.db.delete(volunteer_list)
        await self.db.flush()
        logger.info("List %s deleted from org %s", list_id, org_id)
        return AdminMessageResponse(message="List deleted", updated=1)

    async def list_signups(self, org_id: UUID, list_id: UUID) -> AdminSignupListResponse:
        """Every signup of a list, newest first, cancelled ones included."""
        volunteer_list = await self._get_list(org_id, list_id)
        result = await self.db.execute(
            select(VolunteerSignup)
            .where(VolunteerSignup.list_id == volunteer_list.id)
            .order_by(VolunteerSignup.created_at.desc())
        )
        signups = list(result.scalars().all())

        last_reminders: dict[UUID, SmsMessage] = {}
        if signups:
            sms_result = await self.db.execute(
                select(SmsMessage)
                .where(
                    SmsMessage.signup_id.in_([s.id for s in signups]),
                    SmsMessage.message_type == SmsMessageType.reminder,
                )
                .order_by(SmsMessage.created_at.desc())
            )
            for message in sms_result.scalars().all():
                last_reminders.setdefault(message.signup_id, message)

        return AdminSignupListResponse(
            signups=[
                AdminSignup(
                    id=s.id,
                    name=s.name,
                    phone=s.phone,
                    email=s.email,
                    sms_consent=s.sms_consent,
                    sms_opted_out=s.sms_opted_out,
                    signed_up_at=s.created_at,
                    confirmed_at=s.confirmed_at,
                    cancelled_at=s.cancelled_at,
                    reminder_status=reminder_status(s, last_reminders.get(s.id)),
                    last_reminder_sent_at=s.last_reminder_sent_at,
                    reminder_error=(
                        last_reminders[s.id].error_message if s.id in last_reminders else None
                    ),
                    reminder_count=s.reminder_count,
                )
                for s in signups
            ]
        )

    # -----------------------------------------------------------------------
    # Duplicate
    # -----------------------------------------------------------------------

    async def duplicate_event(self, org_id: UUID, event_id: UUID) -> DuplicateEventResponse:
        """Copy an event and all of its lists. Signups are not copied."""
        original = await self._get_event(org_id, event_id)

        lists_result = await self.db.execute(
            select(VolunteerList)
            .where(VolunteerList.event_id == original.id)
            .order_by(VolunteerList.position)
        )
        original_lists = list(lists_result.scalars().all())

        async with transaction(self.db):
            copy = VolunteerEvent(
                organization_id=org_id,
                slug=f"{original.slug}-copy-{int(time.time() * 1000)}",
                title=f"{original.title} (Copy)",
                description=original.description,
                event_date=original.event_date,
                is_active=original.is_active,
            )
            self.db.add(copy)
            await self.db.flush()

            for vl in original_lists:
                self.db.add(
                    VolunteerList(
                        event_id=copy.id,
                        title=vl.title,
                        description=vl.description,
                        max_slots=vl.max_slots,
                        is_locked=vl.is_locked,
                        position=vl.position,
                    )
                )
            await self.db.flush()

        await self.db.refresh(copy)
        logger.info("Event %s duplicated as %s with %d lists", original.id, copy.id, len(original_lists))
        return DuplicateEventResponse(
            message="Event duplicated successfully",
            event=EventResponse.model_validate(copy),
            lists_copied=len(original_lists),
        )

    # -----------------------------------------------------------------------
    # Reorder
    # -----------------------------------------------------------------------

    async def reorder_events(self, org_id: UUID, event_ids: list[UUID]) -> AdminMessageResponse:
        """Set sort_order to each event's index in `event_ids`."""
        _reject_duplicates(event_ids)
        if event_ids:
            owned = await self.db.scalar(
                select(func.count(VolunteerEvent.id)).where(
                    VolunteerEvent.id.in_(event_ids),
                    VolunteerEvent.organization_id == org_id,
                )
            )
            if owned != len(event_ids):
                raise _event_not_found()

        async with transaction(self.db):
            for index, event_id in enumerate(event_ids):
                await self.db.execute(
                    update(VolunteerEvent)
                    .where(
                        VolunteerEvent.id == event_id,
                        VolunteerEvent.organization_id == org_id,
                    )
                    .values(sort_order=index)
                    .execution_options(synchronize_session="fetch")
                )

        logger.info("Reordered %d events in org %s", len(event_ids), org_id)
        return AdminMessageResponse(message="Events reordered successfully", updated=len(event_ids))

    async def reorder_lists(self, org_id: UUID, list_ids: list[UUID]) -> AdminMessageResponse:
        """Set position to each list's index in `list_ids`."""
        _reject_duplicates(list_ids)
        if list_ids:
            owned = await self.db.scalar(
                select(func.count(VolunteerList.id))
                .join(VolunteerEvent, VolunteerList.event_id == VolunteerEvent.id)
                .where(
                    VolunteerList.id.in_(list_ids),
                    VolunteerEvent.organization_id == org_id,
                )
            )
            if owned != len(list_ids):
                raise _list_not_found()

        async with transaction(self.db):
            for index, list_id in enumerate(list_ids):
                await self.db.execute(
                    update(VolunteerList)
                    .where(VolunteerList.id == list_id)
                    .values(position=index)
                    .execution_options(synchronize_session="fetch")
                )

        logger.info("Reordered %d lists in org %s", len(list_ids), org_id)
        return AdminMessageResponse(message="Lists reordered successfully", updated=len(list_ids))

    # -----------------------------------------------------------------------
    # Lock / unlock
    # -----------------------------------------------------------------------

    async def lock_all(self, org_id: UUID, event_id: UUID, locked: bool) -> AdminMessageResponse:
        event = await self._get_event(org_id, event_id)
        result = await self.db.execute(
            update(VolunteerList)
            .where(VolunteerList.event_id == event.id)
            .values(is_locked=locked)
            .execution_options(synchronize_session="fetch")
        )
        message = "All lists locked successfully" if locked else "All lists unlocked successfully"
        logger.info("%s for event %s", message, event.id)
        return AdminMessageResponse(message=message, updated=result.rowcount or 0)
