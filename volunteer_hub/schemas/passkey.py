"""
Passkey management schemas (proxied to ZITADEL).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class PasskeyListResponse(BaseModel):
    result: list[dict[str, Any]]
    details: dict[str, Any] | None = None


class PasskeyLinkResponse(BaseModel):
    link: str | None
    expires_in: str | int | None = None


class PasskeySendLinkResponse(BaseModel):
    success: bool = True
