"""
Authentication business logic.

Magic-link sign-in, session issue and revocation, /auth/me.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from urllib.parse import urlencode

import redis.asyncio as aioredis
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.security import blacklist_redis_key, create_session_token, token_fingerprint
from volunteer_hub.schemas.auth import (
    CurrentIdentity,
    MagicLinkRequest,
    MagicLinkRequestResponse,
    MembershipSummary,
    MeResponse,
)
from volunteer_hub.services.invite_service import InviteService
from volunteer_hub.services.organization_service import OrganizationService
from volunteer_hub.services.token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class MagicLinkRedemption:
    """Outcome of a redeemed magic link: where to send the browser and the new session."""

    email: str
    redirect_url: str
    session_token: str


def signin_error_url(error: str) -> str:
    return f"{settings.APP_URL}/signin?{urlencode({'error': error})}"


class AuthService:
    """Handles all authentication operations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis) -> None:
        self.db = db
        self.redis = redis
        self.tokens = TokenStore(db)

    # -----------------------------------------------------------------------
    # Magic link
    # -----------------------------------------------------------------------

    async def request_magic_link(self, data: MagicLinkRequest) -> MagicLinkRequestResponse:
        """
        Issue a magic link and queue the email.

        When no email provider is configured and DEBUG is on, the link is
        returned in the response so sign-in still works locally.
        """
        token = await self.tokens.issue(data.email, invite_token=data.invite_token)
        magic_link_url = f"{settings.APP_URL}/auth/magic/{token}"

        if not settings.RESEND_API_KEY:
            logger.warning("RESEND_API_KEY not set; magic link for %s not emailed", data.email)
            if settings.DEBUG:
                return MagicLinkRequestResponse(
                    message="Magic link created (email not configured)",
                    magic_link=magic_link_url,
                )
            return MagicLinkRequestResponse(message="Magic link sent to your email")

        from volunteer_hub.workers.email_tasks import send_magic_link_email
        send_magic_link_email.delay(to_email=data.email, magic_link_url=magic_link_url)

        return MagicLinkRequestResponse(message="Magic link sent to your email")

    async def redeem_magic_link(self, token: str) -> MagicLinkRedemption | None:
        """
        Consume a magic link and start a session.

        If the link carries an invite token the invite is accepted for the
        link's email. Returns None for any invalid, used or expired link.
        """
        record = await self.tokens.redeem(token)
        if record is None:
            return None

        redirect_url = f"{settings.APP_URL}/auth/magic-success"

        if record.invite_token:
            invites = InviteService(self.db)
            found = await invites.get_by_token(record.invite_token)
            if found is not None:
                _, org = found
                try:
                    member = await invites.accept(record.invite_token, record.email)
                except HTTPException as exc:
                    logger.warning(
                        "Invite on magic link %s not accepted: %s", token_fingerprint(token), exc.detail
                    )
                    member = None
                if member is not None:
                    query = urlencode({"org": org.name, "email": record.email})
                    redirect_url = f"{settings.APP_URL}/invites/accepted?{query}"
            else:
                logger.info(
                    "Magic link %s referenced an invalid invite", token_fingerprint(token)
                )

        session_token, _ = create_session_token(record.email)
        logger.info("Magic link %s redeemed by %s", token_fingerprint(token), record.email)
        return MagicLinkRedemption(
            email=record.email,
            redirect_url=redirect_url,
            session_token=session_token,
        )

    # -----------------------------------------------------------------------
    # Logout
    # -----------------------------------------------------------------------

    async def logout(self, identity: CurrentIdentity) -> None:
        """Blacklist the session JTI for the rest of its lifetime."""
        if identity.jti is None:
            return
        ttl = settings.SESSION_EXPIRE_MINUTES * 60
        if identity.session_expires_at is not None:
            ttl = max(int(identity.session_expires_at - time.time()), 1)
        await self.redis.setex(blacklist_redis_key(identity.jti), ttl, "1")
        logger.info("Session %s revoked for %s", identity.jti, identity.email)

    # -----------------------------------------------------------------------
    # Me
    # -----------------------------------------------------------------------

    async def get_me(self, identity: CurrentIdentity) -> MeResponse:
        orgs = OrganizationService(self.db)
        memberships = await orgs.memberships_for_email(identity.email)
        return MeResponse(
            email=identity.email,
            name=identity.name,
            auth_method="session" if identity.jti else "identity_provider",
            organizations=[
                MembershipSummary(
                    organization_id=org.public_id,
                    organization_name=org.name,
                    role=member.role.value,
                )
                for member, org in memberships
            ],
        )
