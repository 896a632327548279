"""
Maintenance background tasks.

Periodic cleanup of magic-link tokens that can no longer be redeemed.
"""

from __future__ import annotations

import asyncio
import logging

from volunteer_hub.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="volunteer_hub.workers.maintenance_tasks.purge_expired_magic_links",
    bind=True,
    max_retries=3,
    default_retry_delay=300,
)
def purge_expired_magic_links(self) -> dict[str, int]:  # type: ignore[no-untyped-def]
    """Delete used or expired magic links older than MAGIC_LINK_RETENTION_DAYS."""
    try:
        # Fresh loop per run: forked workers must not reuse a closed one
        from volunteer_hub.core.database import async_engine
        async_engine.sync_engine.dispose()

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            deleted = loop.run_until_complete(_purge())
        finally:
            loop.close()
        return {"deleted": deleted}
    except Exception as exc:
        logger.error("purge_expired_magic_links failed: %s", exc)
        raise self.retry(exc=exc)


async def _purge() -> int:
    from volunteer_hub.core.database import AsyncSessionLocal
    from volunteer_hub.services.token_store import TokenStore

    async with AsyncSessionLocal() as session:
        deleted = await TokenStore(session).purge_expired()
        await session.commit()
    return deleted
