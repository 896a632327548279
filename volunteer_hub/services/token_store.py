"""
Magic-link token store.

Opaque single-use tokens scoped to an email. Validity is always
evaluated in SQL against a bound `now`, so the check and the consume
happen in the same statement.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.security import generate_token, token_fingerprint, utcnow
from volunteer_hub.models.magic_link import MagicLinkToken

logger = logging.getLogger(__name__)


class TokenStore:
    """Issue, redeem and purge magic-link tokens."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def issue(
        self,
        email: str,
        ttl: timedelta | None = None,
        invite_token: str | None = None,
    ) -> str:
        """
        Persist a new token for `email` and return it.

        Args:
            email: Subject of the token (stored lowercased).
            ttl: Lifetime; defaults to MAGIC_LINK_TTL_MINUTES.
            invite_token: Pending invite to accept when the link is redeemed.
        """
        if ttl is None:
            ttl = timedelta(minutes=settings.MAGIC_LINK_TTL_MINUTES)

        now = utcnow()
        token = generate_token()
        record = MagicLinkToken(
            email=email.strip().lower(),
            token=token,
            created_at=now,
            expires_at=now + ttl,
            used=False,
            invite_token=invite_token,
        )
        self.db.add(record)
        await self.db.flush()

        logger.info("Issued magic link %s for %s", token_fingerprint(token), record.email)
        return token

    async def redeem(self, token: str) -> MagicLinkToken | None:
        """
        Consume a token in one conditional UPDATE.

        Returns the consumed record, or None when the token is unknown,
        already used or expired. Concurrent callers cannot both succeed.
        """
        now = utcnow()
        result = await self.db.execute(
            update(MagicLinkToken)
            .where(
                MagicLinkToken.token == token,
                MagicLinkToken.used.is_(False),
                MagicLinkToken.expires_at > now,
            )
            .values(used=True, used_at=now)
            .returning(MagicLinkToken)
            .execution_options(synchronize_session="fetch")
        )
        record = result.scalar_one_or_none()
        if record is None:
            logger.info("Rejected magic link %s", token_fingerprint(token))
        return record

    async def lookup(self, token: str) -> MagicLinkToken | None:
        """Return the token if it could be redeemed right now, without consuming it."""
        result = await self.db.execute(
            select(MagicLinkToken).where(
                MagicLinkToken.token == token,
                MagicLinkToken.used.is_(False),
                MagicLinkToken.expires_at > utcnow(),
            )
        )
        return result.scalar_one_or_none()

    async def mark_used(self, token: str) -> bool:
        """
        Mark a token used. Returns True only for the call that flipped it.

        Calling again is a no-op: `used_at` keeps its first value.
        """
        result = await self.db.execute(
            update(MagicLinkToken)
            .where(MagicLinkToken.token == token, MagicLinkToken.used.is_(False))
            .values(used=True, used_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    async def purge_expired(self, older_than: timedelta | None = None) -> int:
        """
        Delete tokens created before the retention cutoff that can no
        longer be redeemed. Returns the number of deleted rows.
        """
        if older_than is None:
            older_than = timedelta(days=settings.MAGIC_LINK_RETENTION_DAYS)

        now = utcnow()
        cutoff: datetime = now - older_than
        result = await self.db.execute(
            delete(MagicLinkToken)
            .where(
                MagicLinkToken.created_at < cutoff,
                or_(MagicLinkToken.used.is_(True), MagicLinkToken.expires_at <= now),
            )
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0
        logger.info("Purged %d magic link tokens older than %s", deleted, cutoff.isoformat())
        return deleted
