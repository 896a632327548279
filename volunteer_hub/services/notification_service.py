"""
Admin-triggered SMS: event cancellation and change notices, and manual
reminders. Every message goes through SmsService so it is logged and
subject to the same duplicate suppression as the scheduled reminders.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.security import mask_phone, utcnow
from volunteer_hub.models.event import VolunteerEvent, VolunteerList
from volunteer_hub.models.signup import VolunteerSignup
from volunteer_hub.models.sms import SmsMessageType
from volunteer_hub.schemas.admin import (
    ManualReminderRequest,
    ManualReminderResponse,
    ManualReminderResult,
    SendCountsResponse,
)
from volunteer_hub.services.reminder_settings_service import ReminderSettingsService
from volunteer_hub.services.sms_service import SmsResult, SmsService
from volunteer_hub.services.volunteer_service import VolunteerService, manage_url

logger = logging.getLogger(__name__)

# Pause between provider calls
SEND_INTERVAL_SECONDS = 0.1


def short_date(value: date) -> str:
    """date(2025, 4, 20) -> "Sun, Apr 20"."""
    return f"{value:%a}, {value:%b} {value.day}"


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute {placeholders}; unknown placeholders are left as they are."""
    for key, value in values.items():
        template = template.replace("{" + key + "}", value)
    return template


def cancellation_text(event_title: str, list_title: str) -> str:
    return f"CANCELLED: {event_title} - {list_title} has been cancelled. We apologize for any inconvenience."


def change_text(event_title: str, event_date: date | None, description: str) -> str:
    when = f" ({short_date(event_date)})" if event_date else ""
    return f"UPDATE: {event_title}{when} - {description}. Reply STOP to opt out."


def _eligible():
    return (
        VolunteerSignup.phone.is_not(None),
        VolunteerSignup.sms_consent.is_(True),
        VolunteerSignup.sms_opted_out.is_(False),
        VolunteerSignup.cancelled_at.is_(None),
    )


class NotificationService:
    """Sends admin-triggered SMS. All queries scoped by organization_id."""

    def __init__(self, db: AsyncSession, sms: SmsService) -> None:
        self.db = db
        self.sms = sms
        self.volunteers = VolunteerService(db)
        self.settings = ReminderSettingsService(db)

    async def _get_event(self, org_id: UUID, event_id: UUID) -> VolunteerEvent:
        result = await self.db.execute(
            select(VolunteerEvent).where(
                VolunteerEvent.id == event_id,
                VolunteerEvent.organization_id == org_id,
            )
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "EVENT_NOT_FOUND", "message": "Event not found"},
            )
        return event

    async def _recipients(self, event_id: UUID) -> list[tuple[VolunteerSignup, VolunteerList]]:
        result = await self.db.execute(
            select(VolunteerSignup, VolunteerList)
            .join(VolunteerList, VolunteerSignup.list_id == VolunteerList.id)
            .where(VolunteerList.event_id == event_id, *_eligible())
            .order_by(VolunteerList.position, VolunteerSignup.position)
        )
        return list(result.tuples().all())

    # -----------------------------------------------------------------------
    # Event notices
    # -----------------------------------------------------------------------

    async def _broadcast(
        self,
        event: VolunteerEvent,
        messages: list[tuple[VolunteerSignup, str]],
        message_type: SmsMessageType,
    ) -> SendCountsResponse:
        sent = failed = 0
        for index, (signup, message) in enumerate(messages):
            if index:
                await asyncio.sleep(SEND_INTERVAL_SECONDS)
            outcome = await self.sms.send(
                to=signup.phone,
                message=message,
                signup_id=signup.id,
                event_id=event.id,
                message_type=message_type,
            )
            if outcome.skipped:
                continue
            if outcome.success:
                sent += 1
            else:
                failed += 1

        logger.info(
            "%s notifications for event %s: %d sent, %d failed",
            message_type.value.capitalize(), event.id, sent, failed,
        )
        return SendCountsResponse(sent=sent, failed=failed)

    async def notify_cancellation(self, org_id: UUID, event_id: UUID) -> SendCountsResponse:
        """Tell every consenting volunteer of the event that their list is cancelled."""
        event = await self._get_event(org_id, event_id)
        recipients = await self._recipients(event.id)
        messages = [(signup, cancellation_text(event.title, vl.title)) for signup, vl in recipients]
        return await self._broadcast(event, messages, SmsMessageType.cancellation)

    async def notify_change(self, org_id: UUID, event_id: UUID, description: str | None) -> SendCountsResponse:
        """Send a free-text update to every consenting volunteer of the event."""
        if not description or not description.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_INPUT", "message": "Message is required for change notifications"},
            )
        event = await self._get_event(org_id, event_id)
        text = change_text(event.title, event.event_date, description.strip())
        recipients = await self._recipients(event.id)
        return await self._broadcast(event, [(signup, text) for signup, _ in recipients], SmsMessageType.change)

    # -----------------------------------------------------------------------
    # Manual reminders
    # -----------------------------------------------------------------------

    async def send_manual_reminders(self, org_id: UUID, data: ManualReminderRequest) -> ManualReminderResponse:
        """
        Remind one signup, one list or one event right now.

        Uses the event's reminder template. A reminder already sent to
        the same signup within 24 hours is reported as skipped.
        """
        stmt = (
            select(VolunteerSignup, VolunteerList, VolunteerEvent)
            .join(VolunteerList, VolunteerSignup.list_id == VolunteerList.id)
            .join(VolunteerEvent, VolunteerList.event_id == VolunteerEvent.id)
            .where(VolunteerEvent.organization_id == org_id, *_eligible())
        )
        if data.signup_id is not None:
            stmt = stmt.where(VolunteerSignup.id == data.signup_id)
        elif data.list_id is not None:
            stmt = stmt.where(VolunteerList.id == data.list_id)
        elif data.event_id is not None:
            stmt = stmt.where(VolunteerEvent.id == data.event_id)
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_INPUT", "message": "Must provide listId, signupId, or eventId"},
            )

        rows = (await self.db.execute(stmt.order_by(VolunteerSignup.created_at))).tuples().all()

        templates: dict[UUID, str] = {}
        results: list[ManualReminderResult] = []
        for index, (signup, volunteer_list, event) in enumerate(rows):
            if index:
                await asyncio.sleep(SEND_INTERVAL_SECONDS)
            if event.id not in templates:
                templates[event.id] = (await self.settings.resolve(org_id, event.id)).message_template

            token = await self.volunteers.issue_token(signup.phone, org_id)
            message = render_template(
                templates[event.id],
                {
                    "name": (signup.name.split() or [signup.name])[0],
                    "role": volunteer_list.title,
                    "event": event.title,
                    "date": short_date(event.event_date) if event.event_date else "TBD",
                    "self_service_url": manage_url(token),
                },
            )
            outcome = await self.sms.send(
                to=signup.phone,
                message=message,
                signup_id=signup.id,
                event_id=event.id,
                message_type=SmsMessageType.reminder,
            )
            results.append(await self._record(signup, outcome))

        sent = sum(1 for r in results if r.status == "sent")
        failed = sum(1 for r in results if r.status == "failed")
        skipped = sum(1 for r in results if r.status == "skipped")
        logger.info("Manual reminders in org %s: %d sent, %d failed, %d skipped", org_id, sent, failed, skipped)
        return ManualReminderResponse(
            sent=sent, failed=failed, skipped=skipped, total=len(results), results=results
        )

    async def _record(self, signup: VolunteerSignup, outcome: SmsResult) -> ManualReminderResult:
        if outcome.skipped:
            return ManualReminderResult(signup_id=signup.id, name=signup.name, status="skipped")
        if not outcome.success:
            logger.warning("Manual reminder to %s failed: %s", mask_phone(signup.phone), outcome.error)
            return ManualReminderResult(
                signup_id=signup.id, name=signup.name, status="failed", error=outcome.error
            )
        await self.db.execute(
            update(VolunteerSignup)
            .where(VolunteerSignup.id == signup.id)
            .values(
                last_reminder_sent_at=utcnow(),
                reminder_count=VolunteerSignup.reminder_count + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        return ManualReminderResult(signup_id=signup.id, name=signup.name, status="sent")
