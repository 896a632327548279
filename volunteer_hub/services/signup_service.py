"""
Public sign-up business logic.

Event view by public org id and slug, joining a list and leaving it.
Locked lists cannot be changed from the public side.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.security import utcnow
from volunteer_hub.models.event import VolunteerEvent, VolunteerList
from volunteer_hub.models.organization import Organization
from volunteer_hub.models.signup import VolunteerSignup
from volunteer_hub.schemas.signup import (
    PublicEvent,
    PublicEventResponse,
    PublicList,
    PublicSignup,
    SignupAddRequest,
    SignupResponse,
)
from volunteer_hub.services.sms_service import format_phone_number, phone_validation_error

logger = logging.getLogger(__name__)


def _list_locked() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": "LIST_LOCKED", "message": "This list is locked and cannot be modified"},
    )


class SignupService:
    """Handles public sign-up operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Public view
    # -----------------------------------------------------------------------

    async def get_public_event(self, org_public_id: str, slug: str) -> PublicEventResponse:
        """Active event with its lists in position order and their live signups."""
        result = await self.db.execute(
            select(VolunteerEvent)
            .join(Organization, VolunteerEvent.organization_id == Organization.id)
            .where(
                Organization.public_id == org_public_id,
                VolunteerEvent.slug == slug,
                VolunteerEvent.is_active.is_(True),
            )
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "EVENT_NOT_FOUND", "message": "Event not found"},
            )

        lists_result = await self.db.execute(
            select(VolunteerList)
            .where(VolunteerList.event_id == event.id)
            .order_by(VolunteerList.position)
        )
        lists = list(lists_result.scalars().all())

        signups_by_list: dict[UUID, list[VolunteerSignup]] = defaultdict(list)
        if lists:
            signups_result = await self.db.execute(
                select(VolunteerSignup)
                .where(
                    VolunteerSignup.list_id.in_([vl.id for vl in lists]),
                    VolunteerSignup.cancelled_at.is_(None),
                )
                .order_by(VolunteerSignup.position)
            )
            for signup in signups_result.scalars().all():
                signups_by_list[signup.list_id].append(signup)

        public_lists = []
        for vl in lists:
            signups = signups_by_list[vl.id]
            public_lists.append(
                PublicList(
                    id=vl.id,
                    title=vl.title,
                    description=vl.description,
                    max_slots=vl.max_slots,
                    is_locked=vl.is_locked,
                    position=vl.position,
                    signup_count=len(signups),
                    is_full=vl.max_slots is not None and len(signups) >= vl.max_slots,
                    signups=[PublicSignup.model_validate(s) for s in signups],
                )
            )

        return PublicEventResponse(event=PublicEvent.model_validate(event), lists=public_lists)

    # -----------------------------------------------------------------------
    # Add
    # -----------------------------------------------------------------------

    async def add_signup(self, data: SignupAddRequest) -> SignupResponse:
        """
        Put a person on a list.

        - Unknown list: 404
        - Locked list: 403
        - Full list: 400
        - Invalid phone number: 400
        """
        volunteer_list = await self.db.get(VolunteerList, data.list_id)
        if volunteer_list is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "LIST_NOT_FOUND", "message": "List not found"},
            )

        if volunteer_list.is_locked:
            raise _list_locked()

        if volunteer_list.max_slots is not None:
            count = await self.db.scalar(
                select(func.count(VolunteerSignup.id)).where(
                    VolunteerSignup.list_id == volunteer_list.id,
                    VolunteerSignup.cancelled_at.is_(None),
                )
            )
            if (count or 0) >= volunteer_list.max_slots:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"code": "LIST_FULL", "message": "This list is full"},
                )

        phone = None
        if data.phone:
            phone_error = phone_validation_error(data.phone)
            if phone_error:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"code": "INVALID_PHONE", "message": phone_error},
                )
            phone = format_phone_number(data.phone)

        max_position = await self.db.scalar(
            select(func.max(VolunteerSignup.position)).where(
                VolunteerSignup.list_id == volunteer_list.id
            )
        )
        next_position = 0 if max_position is None else max_position + 1

        signup = VolunteerSignup(
            list_id=volunteer_list.id,
            name=data.name,
            email=str(data.email).lower() if data.email else None,
            phone=phone,
            position=next_position,
            sms_consent=bool(phone) and data.sms_consent,
            sms_opted_out=False,
            reminder_count=0,
            created_at=utcnow(),
        )
        self.db.add(signup)
        await self.db.flush()

        logger.info("Signup %s added to list %s at position %d", signup.id, volunteer_list.id, next_position)
        return SignupResponse.model_validate(signup)

    # -----------------------------------------------------------------------
    # Remove
    # -----------------------------------------------------------------------

    async def remove_signup(self, signup_id: UUID) -> None:
        """Delete a signup unless its list is locked (403)."""
        result = await self.db.execute(
            select(VolunteerSignup, VolunteerList.is_locked)
            .join(VolunteerList, VolunteerSignup.list_id == VolunteerList.id)
            .where(VolunteerSignup.id == signup_id)
        )
        row = result.one_or_none()
        if row is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "SIGNUP_NOT_FOUND", "message": "Signup not found"},
            )

        signup, is_locked = row
        if is_locked:
            raise _list_locked()

        await self.db.delete(signup)
        await self.db.flush()
        logger.info("Signup %s removed", signup_id)
