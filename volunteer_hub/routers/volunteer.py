"""
Volunteer self-service endpoints, authorized by the manage-link token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.database import get_db
from volunteer_hub.schemas.volunteer import (
    CancelSignupRequest,
    ConfirmSignupRequest,
    ManageActionResponse,
    ManageViewResponse,
)
from volunteer_hub.services.volunteer_service import VolunteerService

router = APIRouter()


def get_volunteer_service(db: AsyncSession = Depends(get_db)) -> VolunteerService:
    """Dependency that constructs VolunteerService."""
    return VolunteerService(db=db)


@router.get(
    "/manage/{token}",
    response_model=ManageViewResponse,
    summary="Upcoming signups for a manage link",
)
async def get_manage_view(
    token: str,
    service: VolunteerService = Depends(get_volunteer_service),
) -> ManageViewResponse:
    return await service.get_manage_view(token)


@router.post(
    "/manage/{token}/confirm",
    response_model=ManageActionResponse,
    summary="Confirm a signup",
)
async def confirm_signup(
    token: str,
    data: ConfirmSignupRequest,
    service: VolunteerService = Depends(get_volunteer_service),
) -> ManageActionResponse:
    return await service.confirm(token, data.signup_id)


@router.post(
    "/manage/{token}/cancel",
    response_model=ManageActionResponse,
    summary="Cancel a signup",
)
async def cancel_signup(
    token: str,
    data: CancelSignupRequest,
    service: VolunteerService = Depends(get_volunteer_service),
) -> ManageActionResponse:
    return await service.cancel(token, data.signup_id, data.reason)
