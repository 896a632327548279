"""
Security utilities.

Opaque token generation, session JWT creation/validation, Redis key helpers.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from volunteer_hub.core.config import settings


# ---------------------------------------------------------------------------
# Opaque tokens
# ---------------------------------------------------------------------------

def generate_token() -> str:
    """Return 32 random bytes as 64 hex chars (magic links, invites, manage links)."""
    return secrets.token_hex(32)


def generate_public_id() -> str:
    """Return a 12-char hex id safe to put in public URLs."""
    return secrets.token_hex(6)


def token_fingerprint(token: str) -> str:
    """Short, non-reversible label for log lines."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Session JWT
# ---------------------------------------------------------------------------

def create_session_token(email: str, name: str | None = None) -> tuple[str, str]:
    """
    Create a signed session token for an email identity.

    Args:
        email: Verified email address (lowercased by the caller).
        name: Optional display name.

    Returns:
        Tuple of (encoded_token, jti) so the jti can be blacklisted on logout.
    """
    now = utcnow()
    expire = now + timedelta(minutes=settings.SESSION_EXPIRE_MINUTES)
    jti = str(uuid.uuid4())
    payload: dict[str, Any] = {
        "sub": email,
        "name": name,
        "jti": jti,
        "type": "session",
        "iat": now,
        "exp": expire,
    }
    token = jwt.encode(payload, settings.SESSION_SECRET_KEY, algorithm=settings.SESSION_ALGORITHM)
    return token, jti


def decode_session_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a session token.

    Raises:
        JWTError: If invalid, expired, tampered or of the wrong type.
    """
    payload = jwt.decode(token, settings.SESSION_SECRET_KEY, algorithms=[settings.SESSION_ALGORITHM])
    if payload.get("type") != "session":
        raise JWTError("Not a session token")
    return payload


# ---------------------------------------------------------------------------
# Redis key helpers
# ---------------------------------------------------------------------------

def blacklist_redis_key(jti: str) -> str:
    """Redis key for a revoked session JTI. Format: blacklist:{jti}"""
    return f"blacklist:{jti}"


def userinfo_redis_key(access_token: str) -> str:
    """Redis key for cached IdP userinfo. Format: userinfo:{sha256(token)}"""
    digest = hashlib.sha256(access_token.encode("utf-8")).hexdigest()
    return f"userinfo:{digest}"


# ---------------------------------------------------------------------------
# Cron
# ---------------------------------------------------------------------------

def verify_bearer_secret(authorization: str | None, secret: str) -> bool:
    """Constant-time check of an `Authorization: Bearer <secret>` header."""
    if not authorization:
        return False
    return hmac.compare_digest(authorization.encode(), f"Bearer {secret}".encode())


# ---------------------------------------------------------------------------
# Phone numbers
# ---------------------------------------------------------------------------

_MASK_PATTERN = re.compile(r"^(\+?\d{2})\d+(\d{4})$")


def mask_phone(phone: str) -> str:
    """+12345678901 -> +12***8901; anything else is returned unchanged."""
    return _MASK_PATTERN.sub(r"\1***\2", phone)
