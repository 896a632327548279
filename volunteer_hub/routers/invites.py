"""
Invite endpoints.

Send (admin), view (public) and accept/decline (signed in).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.database import get_db
from volunteer_hub.core.dependencies import get_current_identity, require_role
from volunteer_hub.models.member import OrgMember, OrgRole
from volunteer_hub.models.organization import Organization
from volunteer_hub.schemas.auth import CurrentIdentity
from volunteer_hub.schemas.organization import (
    InviteActionRequest,
    InviteActionResponse,
    InviteInfoResponse,
    InviteLink,
    InviteOrganization,
    InviteSendRequest,
    InviteSendResponse,
)
from volunteer_hub.services.invite_service import InviteService

router = APIRouter()


def get_invite_service(db: AsyncSession = Depends(get_db)) -> InviteService:
    """Dependency that constructs InviteService."""
    return InviteService(db=db)


def _invite_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "INVITE_NOT_FOUND", "message": "Invite not found or expired"},
    )


# ---------------------------------------------------------------------------
# Send
# ---------------------------------------------------------------------------

@router.post(
    "/send",
    response_model=InviteSendResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite someone to the organization",
)
async def send_invite(
    data: InviteSendRequest,
    org_and_member: tuple[Organization, OrgMember] = Depends(require_role(OrgRole.admin)),
    identity: CurrentIdentity = Depends(get_current_identity),
    service: InviteService = Depends(get_invite_service),
) -> InviteSendResponse:
    """
    Create (or refresh) a pending invite and email its link.

    - Owner or admin only
    - Role must be admin or member
    - Returns the shareable link so it can also be sent by hand
    """
    org, _ = org_and_member
    invite = await service.create(
        org=org,
        email=data.email,
        role=data.role,
        invited_by=identity.email,
        name=data.name,
    )
    sign_in_url = f"{settings.APP_URL}/invite/{invite.invite_token}"

    from volunteer_hub.workers.email_tasks import send_invitation_email
    send_invitation_email.delay(
        to_email=invite.user_email,
        org_name=org.name,
        inviter_name=identity.name or identity.email,
        role=invite.role.value,
        invite_url=sign_in_url,
    )

    return InviteSendResponse(
        message=f"Invite created for {invite.user_email}",
        invite=InviteLink(
            email=invite.user_email,
            role=invite.role.value,
            sign_in_url=sign_in_url,
            expires_at=invite.token_expires_at,
        ),
    )


# ---------------------------------------------------------------------------
# View
# ---------------------------------------------------------------------------

@router.get(
    "/{token}",
    response_model=InviteInfoResponse,
    summary="View an invite",
)
async def get_invite(
    token: str,
    service: InviteService = Depends(get_invite_service),
) -> InviteInfoResponse:
    """
    Public: anyone holding the link can see which organization it is for.
    """
    found = await service.get_by_token(token)
    if found is None:
        raise _invite_not_found()

    invite, org = found
    return InviteInfoResponse(
        organization=InviteOrganization(name=org.name, description=org.description),
        email=invite.user_email,
        role=invite.role.value,
        invited_by=invite.invited_by,
        invited_at=invite.invited_at,
    )


# ---------------------------------------------------------------------------
# Accept / decline
# ---------------------------------------------------------------------------

@router.post(
    "/{token}",
    response_model=InviteActionResponse,
    summary="Accept or decline an invite",
)
async def respond_to_invite(
    token: str,
    data: InviteActionRequest,
    identity: CurrentIdentity = Depends(get_current_identity),
    service: InviteService = Depends(get_invite_service),
) -> InviteActionResponse:
    """
    Accept joins the organization as the signed-in identity; decline
    deletes the invite. A used or expired token is 404.
    """
    if data.action == "accept":
        member = await service.accept(token, identity.email)
        if member is None:
            raise _invite_not_found()
        return InviteActionResponse(
            message="Invite accepted successfully",
            organization_id=member.organization_id,
        )

    declined = await service.decline(token, identity.email)
    if declined is None:
        raise _invite_not_found()
    return InviteActionResponse(message="Invite declined")
