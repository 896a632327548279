"""
Volunteer self-service via reusable "manage my signups" links.

A VolunteerToken is bound to a phone number; every signup with that
phone can be viewed, confirmed or cancelled through it.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.security import generate_token, mask_phone, token_fingerprint, utcnow
from volunteer_hub.models.event import VolunteerEvent, VolunteerList
from volunteer_hub.models.signup import VolunteerSignup
from volunteer_hub.models.volunteer_token import VolunteerToken
from volunteer_hub.schemas.volunteer import (
    ManageActionResponse,
    ManagedEvent,
    ManagedSignup,
    ManageViewResponse,
)
from volunteer_hub.services.reminder_settings_service import ReminderSettingsService

logger = logging.getLogger(__name__)

# An existing link is reused while it still has at least this long to live
TOKEN_REUSE_MARGIN = timedelta(days=1)


def _invalid_link() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "INVALID_LINK", "message": "Invalid or expired link. Please request a new one."},
    )


def manage_url(token: str) -> str:
    return f"{settings.APP_URL}/volunteer/manage/{token}"


class VolunteerService:
    """Handles manage-link issue, view, confirm and cancel."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Tokens
    # -----------------------------------------------------------------------

    async def issue_token(self, phone: str, organization_id: UUID | None = None) -> str:
        """Return a live manage token for `phone`, creating one when needed."""
        now = utcnow()
        result = await self.db.execute(
            select(VolunteerToken.token)
            .where(
                VolunteerToken.phone == phone,
                VolunteerToken.expires_at > now + TOKEN_REUSE_MARGIN,
            )
            .order_by(VolunteerToken.expires_at.desc())
            .limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing

        token = generate_token()
        self.db.add(
            VolunteerToken(
                phone=phone,
                token=token,
                organization_id=organization_id,
                created_at=now,
                expires_at=now + timedelta(days=settings.VOLUNTEER_TOKEN_TTL_DAYS),
            )
        )
        await self.db.flush()
        logger.info("Issued manage link %s for %s", token_fingerprint(token), mask_phone(phone))
        return token

    async def _resolve(self, token: str) -> VolunteerToken:
        now = utcnow()
        result = await self.db.execute(
            update(VolunteerToken)
            .where(VolunteerToken.token == token, VolunteerToken.expires_at > now)
            .values(last_used_at=now)
            .returning(VolunteerToken)
            .execution_options(synchronize_session="fetch")
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise _invalid_link()
        return record

    # -----------------------------------------------------------------------
    # View
    # -----------------------------------------------------------------------

    async def get_manage_view(self, token: str) -> ManageViewResponse:
        """
        Upcoming, non-cancelled signups for the token's phone, grouped by
        event, with the coordinator contact from the reminder settings.
        """
        record = await self._resolve(token)
        today = utcnow().date()

        result = await self.db.execute(
            select(VolunteerSignup, VolunteerList, VolunteerEvent)
            .join(VolunteerList, VolunteerSignup.list_id == VolunteerList.id)
            .join(VolunteerEvent, VolunteerList.event_id == VolunteerEvent.id)
            .where(
                VolunteerSignup.phone == record.phone,
                VolunteerSignup.cancelled_at.is_(None),
                (VolunteerEvent.event_date.is_(None)) | (VolunteerEvent.event_date >= today),
            )
        )
        rows = result.all()

        # Dated events first (soonest first), then undated; lists by position
        rows.sort(
            key=lambda r: (
                r[2].event_date is None,
                r[2].event_date or today,
                r[1].position,
            )
        )

        events: dict[UUID, ManagedEvent] = {}
        for signup, volunteer_list, event in rows:
            group = events.get(event.id)
            if group is None:
                contact = await ReminderSettingsService(self.db).resolve(event.organization_id, event.id)
                group = ManagedEvent(
                    event_id=event.id,
                    event_title=event.title,
                    event_date=event.event_date,
                    coordinator_name=contact.coordinator_name,
                    coordinator_phone=contact.coordinator_phone,
                    signups=[],
                )
                events[event.id] = group
            group.signups.append(
                ManagedSignup(
                    id=signup.id,
                    name=signup.name,
                    role_title=volunteer_list.title,
                    signed_up_at=signup.created_at,
                    confirmed_at=signup.confirmed_at,
                )
            )

        return ManageViewResponse(phone=mask_phone(record.phone), events=list(events.values()))

    # -----------------------------------------------------------------------
    # Confirm / cancel
    # -----------------------------------------------------------------------

    async def confirm(self, token: str, signup_id: UUID) -> ManageActionResponse:
        """Confirm attendance. Confirming twice is not an error."""
        record = await self._resolve(token)

        result = await self.db.execute(
            update(VolunteerSignup)
            .where(
                VolunteerSignup.id == signup_id,
                VolunteerSignup.phone == record.phone,
                VolunteerSignup.cancelled_at.is_(None),
                VolunteerSignup.confirmed_at.is_(None),
            )
            .values(confirmed_at=utcnow(), confirmed_via="web")
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            logger.info("Signup %s confirmed via manage link", signup_id)
            return ManageActionResponse(message="Signup confirmed!")

        existing = await self.db.execute(
            select(VolunteerSignup.confirmed_at).where(
                VolunteerSignup.id == signup_id,
                VolunteerSignup.phone == record.phone,
                VolunteerSignup.cancelled_at.is_(None),
            )
        )
        if existing.scalar_one_or_none() is not None:
            return ManageActionResponse(message="Already confirmed")

        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "SIGNUP_NOT_FOUND", "message": "Signup not found or already cancelled"},
        )

    async def cancel(self, token: str, signup_id: UUID, reason: str | None = None) -> ManageActionResponse:
        record = await self._resolve(token)

        result = await self.db.execute(
            select(VolunteerSignup, VolunteerList.title, VolunteerEvent.title)
            .join(VolunteerList, VolunteerSignup.list_id == VolunteerList.id)
            .join(VolunteerEvent, VolunteerList.event_id == VolunteerEvent.id)
            .where(
                VolunteerSignup.id == signup_id,
                VolunteerSignup.phone == record.phone,
                VolunteerSignup.cancelled_at.is_(None),
            )
        )
        row = result.one_or_none()
        if row is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "SIGNUP_NOT_FOUND", "message": "Signup not found or already cancelled"},
            )

        signup, role_title, event_title = row
        signup.cancelled_at = utcnow()
        signup.cancel_reason = reason or None
        await self.db.flush()

        logger.info("Signup %s cancelled via manage link", signup_id)
        return ManageActionResponse(message=f"Cancelled: {role_title} at {event_title}")
