"""
Async database engine and session management.

Each request gets one session; the request commits on success and
rolls back on any exception.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from volunteer_hub.core.config import settings

logger = logging.getLogger(__name__)

async_engine = create_async_engine(
    str(settings.DATABASE_URL),
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session bound to the request lifetime."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Scope a group of writes in a SAVEPOINT.

    Every statement inside the block is rolled back together if any of
    them fails, independently of the outer request transaction.
    """
    async with db.begin_nested():
        yield db
