"""
Organization business logic.

Handles onboarding, org context resolution and roster management.
All member queries are scoped by organization_id.
"""

from __future__ import annotations

import logging
import re
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.security import generate_public_id, utcnow
from volunteer_hub.models.member import MemberStatus, OrgMember, OrgRole
from volunteer_hub.models.organization import Organization
from volunteer_hub.schemas.organization import MemberResponse, MembersListResponse
from volunteer_hub.services.invite_service import InviteService

logger = logging.getLogger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _SLUG_STRIP.sub("-", name.lower()).strip("-") or "org"


class OrganizationService:
    """Handles all organization operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Onboarding
    # -----------------------------------------------------------------------

    async def memberships_for_email(self, email: str) -> list[tuple[OrgMember, Organization]]:
        """Active memberships of `email`, most recently joined first."""
        result = await self.db.execute(
            select(OrgMember, Organization)
            .join(Organization, OrgMember.organization_id == Organization.id)
            .where(
                OrgMember.user_email == email.strip().lower(),
                OrgMember.status == MemberStatus.active,
            )
            .order_by(OrgMember.joined_at.desc())
        )
        return [(member, org) for member, org in result.all()]

    async def list_for_email(self, email: str) -> list[Organization]:
        return [org for _, org in await self.memberships_for_email(email)]

    async def setup_organization(
        self,
        owner_email: str,
        owner_name: str | None,
        name: str,
        description: str | None = None,
    ) -> Organization:
        """
        Create an organization with the caller as owner.

        - A caller who already belongs to an organization gets 409
        - The slug is derived from the name and suffixed until unique
        """
        if await self.list_for_email(owner_email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "ORG_EXISTS", "message": "User already has an organization"},
            )

        base_slug = slugify(name)
        slug = base_slug
        counter = 1
        while await self._slug_taken(slug):
            slug = f"{base_slug}-{counter}"
            counter += 1

        org = Organization(
            name=name,
            slug=slug,
            public_id=generate_public_id(),
            description=description,
        )
        self.db.add(org)
        await self.db.flush()

        now = utcnow()
        self.db.add(
            OrgMember(
                organization_id=org.id,
                user_email=owner_email,
                user_name=owner_name,
                role=OrgRole.owner,
                status=MemberStatus.active,
                invited_at=now,
                joined_at=now,
            )
        )
        await self.db.flush()
        await self.db.refresh(org)

        logger.info("Organization %s (%s) created by %s", org.slug, org.public_id, owner_email)
        return org

    async def _slug_taken(self, slug: str) -> bool:
        result = await self.db.execute(select(Organization.id).where(Organization.slug == slug))
        return result.first() is not None

    # -----------------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------------

    async def list_members(self, org_id: UUID) -> MembersListResponse:
        """List active members and pending invites."""
        result = await self.db.execute(
            select(OrgMember)
            .where(OrgMember.organization_id == org_id)
            .order_by(OrgMember.status, OrgMember.invited_at)
        )
        members = [MemberResponse.model_validate(m) for m in result.scalars().all()]
        return MembersListResponse(members=members, total=len(members))

    async def update_member_role(
        self, org_id: UUID, email: str, new_role: str
    ) -> MemberResponse:
        """
        Change a member's role.

        - The owner's role cannot be changed
        - Only admin or member can be assigned
        """
        target = await self._get_member(org_id, email)

        if target.role == OrgRole.owner:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "CANNOT_CHANGE_OWNER", "message": "Cannot change the role of the organization owner"},
            )

        target.role = OrgRole(new_role)
        await self.db.flush()
        logger.info("Role of %s in org %s set to %s", target.user_email, org_id, new_role)
        return MemberResponse.model_validate(target)

    async def remove_member(
        self, org_id: UUID, email: str, acting_email: str
    ) -> MemberResponse:
        """
        Remove a member or revoke a pending invite.

        - Cannot remove yourself
        - Cannot remove the owner
        """
        email = email.strip().lower()
        if email == acting_email.lower():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "CANNOT_REMOVE_SELF", "message": "You cannot remove yourself"},
            )

        target = await self._get_member(org_id, email)

        if target.role == OrgRole.owner:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "CANNOT_REMOVE_OWNER", "message": "Cannot remove the organization owner"},
            )

        snapshot = MemberResponse.model_validate(target)
        if target.status == MemberStatus.pending:
            await InviteService(self.db).revoke(org_id, email)
        else:
            await self.db.delete(target)
            await self.db.flush()

        logger.info("Removed %s (%s) from org %s", email, snapshot.status, org_id)
        return snapshot

    async def _get_member(self, org_id: UUID, email: str) -> OrgMember:
        result = await self.db.execute(
            select(OrgMember).where(
                OrgMember.organization_id == org_id,
                OrgMember.user_email == email.strip().lower(),
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "MEMBER_NOT_FOUND", "message": "Member not found"},
            )
        return member
