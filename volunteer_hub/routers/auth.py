"""
Authentication endpoints.

Magic-link request and redemption, logout, me.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.database import get_db
from volunteer_hub.core.dependencies import get_current_identity, get_redis
from volunteer_hub.schemas.auth import (
    CurrentIdentity,
    MagicLinkRequest,
    MagicLinkRequestResponse,
    MeResponse,
)
from volunteer_hub.services.auth_service import AuthService, signin_error_url

logger = logging.getLogger(__name__)

router = APIRouter()


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> AuthService:
    """Dependency that constructs AuthService."""
    return AuthService(db=db, redis=redis)


# ---------------------------------------------------------------------------
# Magic link
# ---------------------------------------------------------------------------

@router.post(
    "/magic/request",
    response_model=MagicLinkRequestResponse,
    summary="Email a single-use sign-in link",
)
async def request_magic_link(
    data: MagicLinkRequest,
    service: AuthService = Depends(get_auth_service),
) -> MagicLinkRequestResponse:
    """
    Issue a magic link valid for MAGIC_LINK_TTL_MINUTES.

    An optional `inviteToken` is accepted on redemption.
    """
    return await service.request_magic_link(data)


@router.get(
    "/magic/{token}",
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
    summary="Redeem a magic link",
)
async def redeem_magic_link(
    token: str,
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """
    Consume the link, start a session and redirect into the app.

    Any invalid, used or expired link redirects to the sign-in page.
    """
    try:
        redemption = await service.redeem_magic_link(token)
    except SQLAlchemyError:
        logger.exception("Error processing magic link")
        await service.db.rollback()
        return RedirectResponse(signin_error_url("server_error"), status_code=status.HTTP_302_FOUND)

    if redemption is None:
        return RedirectResponse(signin_error_url("invalid_token"), status_code=status.HTTP_302_FOUND)

    response = RedirectResponse(redemption.redirect_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=redemption.session_token,
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
    )
    return response


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    summary="Revoke the current session",
)
async def logout(
    response: Response,
    identity: CurrentIdentity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> dict[str, str]:
    """
    Blacklist the session JTI in Redis and clear the cookie.
    """
    await service.logout(identity)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"message": "Signed out"}


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get current identity",
)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    """
    Return the authenticated identity with its org memberships.
    """
    return await service.get_me(identity)
