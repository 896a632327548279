"""
Day-before SMS reminders.

One message per phone and event, covering every list that phone signed
up for, with a link to manage those signups.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.security import mask_phone, utcnow
from volunteer_hub.models.event import VolunteerEvent, VolunteerList
from volunteer_hub.models.signup import VolunteerSignup
from volunteer_hub.models.sms import SmsMessage, SmsMessageType
from volunteer_hub.schemas.admin import ReminderRunResponse
from volunteer_hub.services.reminder_settings_service import ReminderSettingsService
from volunteer_hub.services.sms_service import SmsService
from volunteer_hub.services.volunteer_service import VolunteerService, manage_url

logger = logging.getLogger(__name__)


def reminder_text(event_title: str, list_titles: list[str], event_date: date, link: str) -> str:
    day = f"{event_date:%A}, {event_date:%b} {event_date.day}"
    roles = ", ".join(list_titles)
    return (
        f"Reminder: You're signed up for {event_title} ({roles}) tomorrow ({day}). "
        f"Manage your signup: {link} Reply STOP to opt out."
    )


class ReminderService:
    def __init__(self, db: AsyncSession, sms: SmsService) -> None:
        self.db = db
        self.sms = sms
        self.volunteers = VolunteerService(db)
        self.settings = ReminderSettingsService(db)

    async def _already_reminded_today(self, phone: str, event_id: UUID) -> bool:
        start_of_day = datetime.combine(utcnow().date(), time.min, tzinfo=UTC)
        result = await self.db.execute(
            select(SmsMessage.id)
            .where(
                SmsMessage.to_phone == phone,
                SmsMessage.event_id == event_id,
                SmsMessage.message_type == SmsMessageType.reminder,
                SmsMessage.created_at >= start_of_day,
            )
            .limit(1)
        )
        return result.first() is not None

    async def send_reminders(self, today: date | None = None) -> ReminderRunResponse:
        """
        Send reminders for events happening the day after `today` (UTC).

        Events whose reminder settings are disabled count as skipped.
        """
        today = today or utcnow().date()
        tomorrow = today + timedelta(days=1)

        result = await self.db.execute(
            select(VolunteerSignup, VolunteerList, VolunteerEvent)
            .join(VolunteerList, VolunteerSignup.list_id == VolunteerList.id)
            .join(VolunteerEvent, VolunteerList.event_id == VolunteerEvent.id)
            .where(
                VolunteerSignup.phone.is_not(None),
                VolunteerSignup.sms_consent.is_(True),
                VolunteerSignup.sms_opted_out.is_(False),
                VolunteerSignup.cancelled_at.is_(None),
                VolunteerEvent.event_date == tomorrow,
            )
            .order_by(VolunteerSignup.created_at)
        )

        groups: dict[tuple[str, UUID], list[tuple[VolunteerSignup, VolunteerList, VolunteerEvent]]] = (
            defaultdict(list)
        )
        for signup, volunteer_list, event in result.all():
            groups[(signup.phone, event.id)].append((signup, volunteer_list, event))

        enabled: dict[UUID, bool] = {}
        sent = failed = skipped = 0
        for (phone, event_id), rows in groups.items():
            event = rows[0][2]
            if event_id not in enabled:
                enabled[event_id] = (await self.settings.resolve(event.organization_id, event_id)).enabled
            if not enabled[event_id] or await self._already_reminded_today(phone, event_id):
                skipped += 1
                continue

            list_titles = sorted({volunteer_list.title for _, volunteer_list, _ in rows})
            token = await self.volunteers.issue_token(phone, event.organization_id)
            message = reminder_text(event.title, list_titles, tomorrow, manage_url(token))

            outcome = await self.sms.send(
                to=phone,
                message=message,
                signup_id=rows[0][0].id,
                event_id=event_id,
                message_type=SmsMessageType.reminder,
            )
            if outcome.skipped:
                skipped += 1
            elif outcome.success:
                sent += 1
                await self.db.execute(
                    update(VolunteerSignup)
                    .where(VolunteerSignup.id.in_([signup.id for signup, _, _ in rows]))
                    .values(
                        last_reminder_sent_at=utcnow(),
                        reminder_count=VolunteerSignup.reminder_count + 1,
                    )
                    .execution_options(synchronize_session="fetch")
                )
            else:
                failed += 1
                logger.warning("Reminder to %s for event %s failed: %s", mask_phone(phone), event_id, outcome.error)

        logger.info(
            "Reminder run for %s: %d sent, %d failed, %d skipped, %d phone+event combinations",
            tomorrow.isoformat(), sent, failed, skipped, len(groups),
        )
        return ReminderRunResponse(sent=sent, failed=failed, skipped=skipped, total=len(groups))
