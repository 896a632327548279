"""
Public sign-up endpoints (no authentication).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.database import get_db
from volunteer_hub.schemas.signup import (
    PublicEventResponse,
    SignupAddRequest,
    SignupRemoveRequest,
    SignupRemoveResponse,
    SignupResponse,
)
from volunteer_hub.services.signup_service import SignupService

router = APIRouter()


def get_signup_service(db: AsyncSession = Depends(get_db)) -> SignupService:
    """Dependency that constructs SignupService."""
    return SignupService(db=db)


@router.post(
    "/add",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Join a volunteer list",
)
async def add_signup(
    data: SignupAddRequest,
    service: SignupService = Depends(get_signup_service),
) -> SignupResponse:
    return await service.add_signup(data)


@router.delete(
    "/remove",
    response_model=SignupRemoveResponse,
    summary="Leave a volunteer list",
)
async def remove_signup(
    data: SignupRemoveRequest,
    service: SignupService = Depends(get_signup_service),
) -> SignupRemoveResponse:
    """Locked lists reject removals with 403 and keep the signup."""
    await service.remove_signup(data.signup_id)
    return SignupRemoveResponse()


@router.get(
    "/{org_id}/{slug}",
    response_model=PublicEventResponse,
    summary="Public event page data",
)
async def get_public_event(
    org_id: str,
    slug: str,
    service: SignupService = Depends(get_signup_service),
) -> PublicEventResponse:
    """`org_id` is the organization's public id."""
    return await service.get_public_event(org_id, slug)
