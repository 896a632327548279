"""
FastAPI dependency injection functions.

Provides Redis connections, outbound HTTP clients, the current identity,
org context and role enforcement.
"""

from __future__ import annotations

import json
import logging

import httpx
import redis.asyncio as aioredis
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.database import get_db
from volunteer_hub.core.security import (
    blacklist_redis_key,
    decode_session_token,
    userinfo_redis_key,
)
from volunteer_hub.models.member import ROLE_RANK, OrgMember, OrgRole
from volunteer_hub.models.organization import Organization
from volunteer_hub.schemas.auth import CurrentIdentity
from volunteer_hub.services.identity_provider import (
    IdentityProviderClient,
    IdentityProviderError,
    ServiceCredentialCache,
)
from volunteer_hub.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# HTTP Bearer scheme (auto_error=False so we can return custom 401)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """
    Return a shared async Redis client.

    Uses a module-level pool so connections are reused across requests.
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_pool


# ---------------------------------------------------------------------------
# Outbound HTTP (owned by the application, created in lifespan)
# ---------------------------------------------------------------------------

def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_service_credentials(request: Request) -> ServiceCredentialCache:
    return request.app.state.service_credentials


def get_identity_provider(
    client: httpx.AsyncClient = Depends(get_http_client),
) -> IdentityProviderClient:
    return IdentityProviderClient(client, settings.AUTH_ZITADEL_ISSUER)


# ---------------------------------------------------------------------------
# Current identity
# ---------------------------------------------------------------------------

def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _identity_from_idp(
    access_token: str,
    redis: aioredis.Redis,
    idp: IdentityProviderClient,
) -> CurrentIdentity:
    """Verify an IdP access token via userinfo, caching the claims briefly."""
    cache_key = userinfo_redis_key(access_token)
    cached = await redis.get(cache_key)
    if cached:
        claims = json.loads(cached)
    else:
        try:
            claims = await idp.get_userinfo(access_token)
        except IdentityProviderError as exc:
            if exc.status_code < 500:
                raise _unauthorized("INVALID_TOKEN", "Token is invalid or expired")
            raise HTTPException(
                status_code=exc.status_code,
                detail={"code": "UPSTREAM_ERROR", "message": exc.message},
            )
        await redis.setex(cache_key, settings.USERINFO_CACHE_SECONDS, json.dumps(claims))

    email = claims.get("email")
    if not email:
        raise _unauthorized("NO_EMAIL", "Identity has no email address")

    return CurrentIdentity(
        email=email.strip().lower(),
        name=claims.get("name"),
        idp_access_token=access_token,
    )


async def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    redis: aioredis.Redis = Depends(get_redis),
    idp: IdentityProviderClient = Depends(get_identity_provider),
) -> CurrentIdentity:
    """
    Resolve the caller from a Bearer header or the session cookie.

    Raises 401 if:
    - No token provided
    - Session token is revoked
    - Token is neither a valid session nor a valid IdP access token
    """
    token = credentials.credentials if credentials is not None else None
    if not token:
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise _unauthorized("MISSING_TOKEN", "Authentication required")

    try:
        payload = decode_session_token(token)
    except JWTError:
        payload = None

    if payload is not None:
        jti: str = payload.get("jti", "")
        if await redis.exists(blacklist_redis_key(jti)):
            raise _unauthorized("TOKEN_REVOKED", "Token has been revoked")
        return CurrentIdentity(
            email=payload["sub"],
            name=payload.get("name"),
            jti=jti,
            session_expires_at=payload.get("exp"),
        )

    if not settings.AUTH_ZITADEL_ISSUER:
        raise _unauthorized("INVALID_TOKEN", "Token is invalid or expired")

    return await _identity_from_idp(token, redis, idp)


async def require_idp_token(
    identity: CurrentIdentity = Depends(get_current_identity),
) -> str:
    """Passkey endpoints act with the user's own IdP token."""
    if not identity.idp_access_token:
        raise _unauthorized("IDP_SESSION_REQUIRED", "Sign in with the identity provider to manage passkeys")
    return identity.idp_access_token


# ---------------------------------------------------------------------------
# Organization context + role enforcement
# ---------------------------------------------------------------------------

async def get_org_context(
    identity: CurrentIdentity = Depends(get_current_identity),
    organization_id: str | None = Header(default=None, alias="X-Organization-Id"),
    db: AsyncSession = Depends(get_db),
) -> tuple[Organization, OrgMember]:
    """
    Resolve the caller's current organization.

    The org named by the X-Organization-Id header (public id) is used when
    present; otherwise the most recently joined active membership.
    Raises 403 if the caller has no matching membership.
    """
    memberships = await OrganizationService(db).memberships_for_email(identity.email)

    if organization_id:
        memberships = [(m, o) for m, o in memberships if o.public_id == organization_id]

    if not memberships:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "NO_ORGANIZATION", "message": "No organization found"},
        )

    member, org = memberships[0]
    return org, member


def require_role(minimum: OrgRole):
    """
    Dependency factory that enforces a minimum role (owner > admin > member).

    Usage:
        @router.post("/...")
        async def endpoint(
            org_and_member: tuple = Depends(require_role(OrgRole.admin)),
        ):
            org, member = org_and_member
    """
    async def role_checker(
        org_and_member: tuple[Organization, OrgMember] = Depends(get_org_context),
    ) -> tuple[Organization, OrgMember]:
        _, member = org_and_member
        if ROLE_RANK[member.role] < ROLE_RANK[minimum]:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_ROLE",
                    "message": f"Required role: {minimum.value} or higher",
                },
            )
        return org_and_member

    return role_checker
