"""
Passkey management endpoints.

Proxied to ZITADEL with the caller's own access token; sending a link by
email goes through the management API with the service credentials.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from volunteer_hub.core.dependencies import (
    get_identity_provider,
    get_service_credentials,
    require_idp_token,
)
from volunteer_hub.schemas.passkey import (
    PasskeyLinkResponse,
    PasskeyListResponse,
    PasskeySendLinkResponse,
)
from volunteer_hub.services.identity_provider import (
    IdentityProviderClient,
    IdentityProviderError,
    ServiceCredentialCache,
)

router = APIRouter()


def _upstream(exc: IdentityProviderError) -> HTTPException:
    status_code = exc.status_code if 400 <= exc.status_code <= 599 else status.HTTP_502_BAD_GATEWAY
    return HTTPException(
        status_code=status_code,
        detail={"code": "UPSTREAM_ERROR", "message": exc.message},
    )


@router.post("/list", response_model=PasskeyListResponse, summary="List passkeys")
async def list_passkeys(
    access_token: str = Depends(require_idp_token),
    idp: IdentityProviderClient = Depends(get_identity_provider),
) -> PasskeyListResponse:
    try:
        data = await idp.list_passkeys(access_token)
    except IdentityProviderError as exc:
        raise _upstream(exc)
    return PasskeyListResponse(**data)


@router.post("/create-link", response_model=PasskeyLinkResponse, summary="Create a passkey registration link")
async def create_passkey_link(
    access_token: str = Depends(require_idp_token),
    idp: IdentityProviderClient = Depends(get_identity_provider),
) -> PasskeyLinkResponse:
    try:
        data = await idp.create_passkey_link(access_token)
    except IdentityProviderError as exc:
        raise _upstream(exc)
    return PasskeyLinkResponse(**data)


@router.post("/send-link", response_model=PasskeySendLinkResponse, summary="Email a passkey registration link")
async def send_passkey_link(
    access_token: str = Depends(require_idp_token),
    idp: IdentityProviderClient = Depends(get_identity_provider),
    credentials: ServiceCredentialCache = Depends(get_service_credentials),
) -> PasskeySendLinkResponse:
    try:
        await idp.send_passkey_link(access_token, credentials)
    except IdentityProviderError as exc:
        raise _upstream(exc)
    return PasskeySendLinkResponse()


@router.delete(
    "/{token_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Remove a passkey",
)
async def delete_passkey(
    token_id: str,
    access_token: str = Depends(require_idp_token),
    idp: IdentityProviderClient = Depends(get_identity_provider),
) -> Response:
    try:
        await idp.delete_passkey(access_token, token_id)
    except IdentityProviderError as exc:
        raise _upstream(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
