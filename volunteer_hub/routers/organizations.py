"""
Organization endpoints.

Onboarding, current org context and roster management.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.database import get_db
from volunteer_hub.core.dependencies import get_current_identity, get_org_context, require_role
from volunteer_hub.models.member import OrgMember, OrgRole
from volunteer_hub.models.organization import Organization
from volunteer_hub.schemas.auth import CurrentIdentity
from volunteer_hub.schemas.organization import (
    MemberMutationResponse,
    MemberRemoveRequest,
    MemberRoleUpdateRequest,
    MembersListResponse,
    OrganizationResponse,
    OrganizationSetupRequest,
    OrganizationSetupResponse,
    OrgContextResponse,
    SetupStatusResponse,
)
from volunteer_hub.services.organization_service import OrganizationService

router = APIRouter()


def get_org_service(db: AsyncSession = Depends(get_db)) -> OrganizationService:
    """Dependency that constructs OrganizationService."""
    return OrganizationService(db=db)


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

@router.get(
    "/onboarding/setup-org",
    response_model=SetupStatusResponse,
    summary="Check whether the caller still needs an organization",
)
async def get_setup_status(
    identity: CurrentIdentity = Depends(get_current_identity),
    service: OrganizationService = Depends(get_org_service),
) -> SetupStatusResponse:
    orgs = await service.list_for_email(identity.email)
    return SetupStatusResponse(
        needs_setup=not orgs,
        organizations=[OrganizationResponse.model_validate(o) for o in orgs],
    )


@router.post(
    "/onboarding/setup-org",
    response_model=OrganizationSetupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an organization with the caller as owner",
)
async def setup_org(
    data: OrganizationSetupRequest,
    identity: CurrentIdentity = Depends(get_current_identity),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationSetupResponse:
    """
    Create the caller's organization.

    - 409 if the caller already belongs to one
    - Slug derived from the name, suffixed until unique
    """
    org = await service.setup_organization(
        owner_email=identity.email,
        owner_name=identity.name,
        name=data.name,
        description=data.description,
    )
    return OrganizationSetupResponse(
        message="Organization created successfully",
        organization=OrganizationResponse.model_validate(org),
    )


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@router.get(
    "/org/context",
    response_model=OrgContextResponse,
    summary="Current organization of the caller",
)
async def get_context(
    identity: CurrentIdentity = Depends(get_current_identity),
    organization_id: str | None = Header(default=None, alias="X-Organization-Id"),
    service: OrganizationService = Depends(get_org_service),
) -> OrgContextResponse:
    memberships = await service.memberships_for_email(identity.email)
    if organization_id:
        memberships = [(m, o) for m, o in memberships if o.public_id == organization_id]
    if not memberships:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NO_ORGANIZATION", "message": "No organization found"},
        )

    member, org = memberships[0]
    return OrgContextResponse(
        organization_id=org.id,
        organization_public_id=org.public_id,
        organization_name=org.name,
        user_email=member.user_email,
        user_role=member.role.value,
    )


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get(
    "/admin/members",
    response_model=MembersListResponse,
    summary="List members and pending invites",
)
async def list_members(
    org_and_member: tuple[Organization, OrgMember] = Depends(get_org_context),
    service: OrganizationService = Depends(get_org_service),
) -> MembersListResponse:
    org, _ = org_and_member
    return await service.list_members(org.id)


@router.patch(
    "/admin/members",
    response_model=MemberMutationResponse,
    summary="Change a member's role",
)
async def update_member_role(
    data: MemberRoleUpdateRequest,
    org_and_member: tuple[Organization, OrgMember] = Depends(require_role(OrgRole.admin)),
    service: OrganizationService = Depends(get_org_service),
) -> MemberMutationResponse:
    """Owner or admin only. The owner's role cannot be changed."""
    org, _ = org_and_member
    member = await service.update_member_role(org.id, data.email, data.role)
    return MemberMutationResponse(message="Role updated successfully", member=member)


@router.delete(
    "/admin/members",
    response_model=MemberMutationResponse,
    summary="Remove a member or revoke an invite",
)
async def remove_member(
    data: MemberRemoveRequest,
    org_and_member: tuple[Organization, OrgMember] = Depends(require_role(OrgRole.admin)),
    service: OrganizationService = Depends(get_org_service),
) -> MemberMutationResponse:
    """Owner or admin only. Nobody can remove the owner or themselves."""
    org, acting_member = org_and_member
    member = await service.remove_member(org.id, data.email, acting_member.user_email)
    return MemberMutationResponse(message="Member removed successfully", member=member)
