"""
Reminder settings: message template and coordinator contact.

Settings resolve field by field: the event's own row first, then the
organization default row, then built-in defaults.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.models.event import VolunteerEvent
from volunteer_hub.models.reminder_settings import ReminderSettings
from volunteer_hub.schemas.admin import ReminderSettingsRequest, ReminderSettingsResponse
from volunteer_hub.services.sms_service import format_phone_number, phone_validation_error

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_TEMPLATE = (
    "Hi {name}, reminder: You're signed up for {role} at {event} on {date}. "
    "Can't make it? {self_service_url} Questions? Contact your coordinator. "
    "Reply STOP to unsubscribe."
)


class ReminderSettingsService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _row(self, org_id: UUID, event_id: UUID | None) -> ReminderSettings | None:
        stmt = select(ReminderSettings).where(ReminderSettings.organization_id == org_id)
        if event_id is None:
            stmt = stmt.where(ReminderSettings.event_id.is_(None))
        else:
            stmt = stmt.where(ReminderSettings.event_id == event_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _check_event(self, org_id: UUID, event_id: UUID) -> None:
        found = await self.db.execute(
            select(VolunteerEvent.id).where(
                VolunteerEvent.id == event_id,
                VolunteerEvent.organization_id == org_id,
            )
        )
        if found.first() is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "EVENT_NOT_FOUND", "message": "Event not found"},
            )

    async def resolve(self, org_id: UUID, event_id: UUID | None = None) -> ReminderSettingsResponse:
        """Effective settings for an event, or the organization default when `event_id` is None."""
        event_row = await self._row(org_id, event_id) if event_id is not None else None
        org_row = await self._row(org_id, None)
        rows = [r for r in (event_row, org_row) if r is not None]

        def first(field: str):
            for row in rows:
                value = getattr(row, field)
                if value is not None:
                    return value
            return None

        return ReminderSettingsResponse(
            id=rows[0].id if rows else None,
            organization_id=org_id,
            event_id=event_id,
            message_template=first("message_template") or DEFAULT_REMINDER_TEMPLATE,
            coordinator_name=first("coordinator_name"),
            coordinator_phone=first("coordinator_phone"),
            enabled=rows[0].enabled if rows else True,
            is_default=not rows,
        )

    async def get(self, org_id: UUID, event_id: UUID | None = None) -> ReminderSettingsResponse:
        if event_id is not None:
            await self._check_event(org_id, event_id)
        return await self.resolve(org_id, event_id)

    async def save(self, org_id: UUID, data: ReminderSettingsRequest) -> ReminderSettingsResponse:
        """Create or update the row for (org, event). Omitted or empty fields keep their value."""
        if data.event_id is not None:
            await self._check_event(org_id, data.event_id)

        coordinator_phone = None
        if data.coordinator_phone:
            coordinator_phone = format_phone_number(data.coordinator_phone)
            if coordinator_phone is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={
                        "code": "INVALID_PHONE",
                        "message": phone_validation_error(data.coordinator_phone) or "Invalid phone number",
                    },
                )

        row = await self._row(org_id, data.event_id)
        if row is None:
            row = ReminderSettings(organization_id=org_id, event_id=data.event_id, enabled=True)
            self.db.add(row)

        if data.message_template:
            row.message_template = data.message_template.strip()
        if data.coordinator_name:
            row.coordinator_name = data.coordinator_name.strip()
        if coordinator_phone:
            row.coordinator_phone = coordinator_phone
        if data.enabled is not None:
            row.enabled = data.enabled
        await self.db.flush()

        logger.info("Reminder settings saved for org %s event %s", org_id, data.event_id)
        return await self.resolve(org_id, data.event_id)
