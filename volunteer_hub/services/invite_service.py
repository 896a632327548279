"""
Invite lifecycle.

An invite is an OrgMember row with status=pending and its own token.
States: pending -> active (accept) or pending -> deleted (decline/revoke).
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.security import generate_token, token_fingerprint, utcnow
from volunteer_hub.models.member import MemberStatus, OrgMember, OrgRole
from volunteer_hub.models.organization import Organization

logger = logging.getLogger(__name__)

INVITABLE_ROLES = frozenset({OrgRole.admin.value, OrgRole.member.value})


def _check_identity(invite: OrgMember, acting_email: str) -> None:
    """Raise 403 when invites are bound to their email and `acting_email` differs."""
    if (
        not settings.INVITE_LINK_GRANTS_ANY_IDENTITY
        and invite.user_email.lower() != acting_email
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "EMAIL_MISMATCH", "message": "This invite was sent to a different email address"},
        )


class InviteService:
    """Create, view, accept, decline and revoke membership invites."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create(
        self,
        org: Organization,
        email: str,
        role: str,
        invited_by: str,
        name: str | None = None,
    ) -> OrgMember:
        """
        Create a pending invite, or refresh the token of an existing one.

        - Role must be admin or member (400)
        - An active member with that email is a conflict (409)
        """
        if role not in INVITABLE_ROLES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_ROLE", "message": "Role must be admin or member"},
            )

        email = email.strip().lower()
        now = utcnow()
        token = generate_token()
        expires_at = now + timedelta(days=settings.INVITE_TTL_DAYS)

        result = await self.db.execute(
            select(OrgMember).where(
                OrgMember.organization_id == org.id,
                OrgMember.user_email == email,
            )
        )
        existing = result.scalar_one_or_none()

        if existing is not None and existing.status == MemberStatus.active:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "ALREADY_MEMBER", "message": "User is already a member of this organization"},
            )

        if existing is not None:
            existing.role = OrgRole(role)
            existing.invite_token = token
            existing.token_expires_at = expires_at
            existing.invited_by = invited_by
            existing.invited_at = now
            if name:
                existing.user_name = name
            invite = existing
        else:
            invite = OrgMember(
                organization_id=org.id,
                user_email=email,
                user_name=name,
                role=OrgRole(role),
                status=MemberStatus.pending,
                invite_token=token,
                token_expires_at=expires_at,
                invited_by=invited_by,
                invited_at=now,
            )
            self.db.add(invite)

        await self.db.flush()
        logger.info(
            "Invite %s for %s to org %s as %s", token_fingerprint(token), email, org.id, role
        )
        return invite

    # -----------------------------------------------------------------------
    # View
    # -----------------------------------------------------------------------

    async def get_by_token(self, token: str) -> tuple[OrgMember, Organization] | None:
        """Return the pending, unexpired invite and its organization."""
        result = await self.db.execute(
            select(OrgMember, Organization)
            .join(Organization, OrgMember.organization_id == Organization.id)
            .where(
                OrgMember.invite_token == token,
                OrgMember.status == MemberStatus.pending,
                OrgMember.token_expires_at > utcnow(),
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        member, org = row
        return member, org

    # -----------------------------------------------------------------------
    # Accept
    # -----------------------------------------------------------------------

    async def accept(self, token: str, acting_email: str) -> OrgMember | None:
        """
        Turn a pending invite into an active membership for `acting_email`.

        Returns None when the token is unknown, expired or already used.
        When `acting_email` is already an active member of the org, the
        invite is consumed and the existing membership is returned.
        """
        acting_email = acting_email.strip().lower()
        found = await self.get_by_token(token)
        if found is None:
            return None
        invite, _ = found
        _check_identity(invite, acting_email)

        org_id = invite.organization_id
        invite_id = invite.id

        existing = await self._get_membership(org_id, acting_email)
        if existing is not None and existing.id != invite_id:
            if existing.status == MemberStatus.active:
                await self.db.execute(
                    delete(OrgMember)
                    .where(OrgMember.id == invite_id, OrgMember.invite_token == token)
                    .execution_options(synchronize_session="fetch")
                )
                logger.info("Invite %s consumed by existing member %s", token_fingerprint(token), acting_email)
                return existing
            # A separate pending invite for the acting email would collide on (org, email)
            await self.db.execute(
                delete(OrgMember)
                .where(OrgMember.id == existing.id)
                .execution_options(synchronize_session="fetch")
            )

        now = utcnow()
        result = await self.db.execute(
            update(OrgMember)
            .where(
                OrgMember.id == invite_id,
                OrgMember.invite_token == token,
                OrgMember.status == MemberStatus.pending,
                OrgMember.token_expires_at > now,
            )
            .values(
                status=MemberStatus.active,
                user_email=acting_email,
                joined_at=now,
                invite_token=None,
                token_expires_at=None,
            )
            .returning(OrgMember)
            .execution_options(synchronize_session="fetch")
        )
        member = result.scalar_one_or_none()
        if member is not None:
            logger.info("Invite %s accepted by %s", token_fingerprint(token), acting_email)
        return member

    # -----------------------------------------------------------------------
    # Decline / revoke
    # -----------------------------------------------------------------------

    async def decline(self, token: str, acting_email: str) -> OrgMember | None:
        """Delete a pending invite. Returns the deleted row, or None if the token is invalid."""
        found = await self.get_by_token(token)
        if found is None:
            return None
        invite, _ = found
        _check_identity(invite, acting_email.strip().lower())
        await self.db.delete(invite)
        await self.db.flush()
        logger.info("Invite %s declined", token_fingerprint(token))
        return invite

    async def revoke(self, org_id: UUID, email: str) -> None:
        """Delete a pending invite by email."""
        result = await self.db.execute(
            delete(OrgMember)
            .where(
                OrgMember.organization_id == org_id,
                OrgMember.user_email == email.strip().lower(),
                OrgMember.status == MemberStatus.pending,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "INVITE_NOT_FOUND", "message": "Invite not found"},
            )

    async def _get_membership(self, org_id: UUID, email: str) -> OrgMember | None:
        result = await self.db.execute(
            select(OrgMember).where(
                OrgMember.organization_id == org_id,
                OrgMember.user_email == email,
            )
        )
        return result.scalar_one_or_none()
