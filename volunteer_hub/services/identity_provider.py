"""
ZITADEL identity provider client.

Two kinds of calls are made against the issuer:
- on behalf of the signed-in user, with the user's own access token
  (userinfo, passkey listing, registration links, passkey removal);
- on behalf of the application, with a client-credentials token held
  in a `ServiceCredentialCache` (management API).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

SERVICE_TOKEN_SCOPE = "openid profile urn:zitadel:iam:org:project:id:zitadel:aud"


class IdentityProviderError(Exception):
    """Raised when the identity provider is unreachable, misconfigured or returns non-2xx."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _raise_for_upstream(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    logger.error("ZITADEL %s failed: %s %s", action, response.status_code, response.text)
    raise IdentityProviderError(response.status_code, f"Failed to {action}")


# ---------------------------------------------------------------------------
# Service credentials
# ---------------------------------------------------------------------------

class ServiceCredentialCache:
    """
    Single-slot cache of a client-credentials access token.

    The cached token is returned while more than `refresh_buffer` seconds
    of its lifetime remain; otherwise a new one is exchanged. There is no
    lock, so concurrent misses may each perform an exchange and the last
    writer wins. A failed exchange never falls back to a stale token.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        issuer: str,
        client_id: str,
        client_secret: str,
        refresh_buffer: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.issuer = issuer.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_buffer = refresh_buffer
        self.clock = clock
        self._token: str | None = None
        self._expires_at: float = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self.issuer and self.client_id and self.client_secret)

    def _is_fresh(self) -> bool:
        return self._token is not None and self._expires_at - self.clock() > self.refresh_buffer

    async def get_token(self) -> str:
        """Return a management API token, exchanging a new one if needed."""
        if self._is_fresh():
            return self._token  # type: ignore[return-value]

        if not self.is_configured:
            raise IdentityProviderError(500, "Missing ZITADEL service user configuration")

        try:
            response = await self.client.post(
                f"{self.issuer}/oauth/v2/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": SERVICE_TOKEN_SCOPE,
                },
            )
        except httpx.HTTPError as exc:
            logger.error("Service token exchange failed: %s", exc)
            raise IdentityProviderError(502, "Identity provider unreachable") from exc

        _raise_for_upstream(response, "get service user token")

        data = response.json()
        try:
            token = data["access_token"]
            expires_in = float(data["expires_in"])
        except (KeyError, TypeError, ValueError) as exc:
            raise IdentityProviderError(502, "Malformed service token response") from exc

        self._token = token
        self._expires_at = self.clock() + expires_in
        logger.info("Refreshed ZITADEL service token (expires in %ss)", int(expires_in))
        return token


# ---------------------------------------------------------------------------
# User-scoped calls
# ---------------------------------------------------------------------------

class IdentityProviderClient:
    """Thin wrapper over the issuer's auth and management APIs."""

    def __init__(self, client: httpx.AsyncClient, issuer: str) -> None:
        self.client = client
        self.issuer = issuer.rstrip("/")

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        action: str,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        if not self.issuer:
            raise IdentityProviderError(500, "Server configuration error")
        try:
            response = await self.client.request(
                method,
                f"{self.issuer}{path}",
                headers={"Authorization": f"Bearer {access_token}"},
                json=json,
            )
        except httpx.HTTPError as exc:
            logger.error("ZITADEL %s failed: %s", action, exc)
            raise IdentityProviderError(502, "Identity provider unreachable") from exc
        _raise_for_upstream(response, action)
        return response

    async def get_userinfo(self, access_token: str) -> dict[str, Any]:
        """Return the OIDC userinfo claims for a user access token."""
        response = await self._request("GET", "/oidc/v1/userinfo", access_token, "fetch userinfo")
        return response.json()

    async def get_current_user_id(self, access_token: str) -> str:
        response = await self._request("GET", "/auth/v1/users/me", access_token, "get user info")
        data = response.json()
        user_id = (data.get("user") or {}).get("id") or data.get("id")
        if not user_id:
            raise IdentityProviderError(502, "Identity provider returned no user id")
        return user_id

    async def list_passkeys(self, access_token: str) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "/auth/v1/users/me/passwordless/_search",
            access_token,
            "list passkeys",
            json={"queries": []},
        )
        data = response.json()
        return {"result": data.get("result") or [], "details": data.get("details")}

    async def create_passkey_link(self, access_token: str) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "/auth/v1/users/me/passwordless/_link",
            access_token,
            "create passkey link",
        )
        data = response.json()
        return {
            "link": data.get("link") or data.get("url"),
            "expires_in": data.get("expiresIn") or data.get("expires_in"),
        }

    async def delete_passkey(self, access_token: str, token_id: str) -> None:
        await self._request(
            "DELETE",
            f"/auth/v1/users/me/passwordless/{token_id}",
            access_token,
            "delete passkey",
        )

    async def send_passkey_link(
        self, access_token: str, credentials: ServiceCredentialCache
    ) -> None:
        """
        Ask the management API to email a registration link to the user.

        The user id is resolved with the user's token; the send itself
        is authorized with the service token.
        """
        user_id = await self.get_current_user_id(access_token)
        service_token = await credentials.get_token()
        await self._request(
            "POST",
            f"/management/v1/users/{user_id}/passwordless/_send",
            service_token,
            "send passkey link",
        )
        logger.info("Sent passkey registration link to user %s", user_id)
