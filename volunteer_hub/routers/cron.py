"""
Scheduled-job endpoints, called by an external scheduler.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.database import get_db
from volunteer_hub.core.dependencies import get_http_client
from volunteer_hub.core.security import verify_bearer_secret
from volunteer_hub.schemas.admin import ReminderRunResponse
from volunteer_hub.services.reminder_service import ReminderService
from volunteer_hub.services.sms_service import SmsService

router = APIRouter()


async def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Require `Authorization: Bearer <CRON_SECRET>` when a secret is configured."""
    if settings.CRON_SECRET and not verify_bearer_secret(authorization, settings.CRON_SECRET):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "Invalid cron secret"},
        )


def get_reminder_service(
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> ReminderService:
    """Dependency that constructs ReminderService."""
    return ReminderService(db=db, sms=SmsService(db=db, client=client))


@router.get(
    "/send-reminders",
    response_model=ReminderRunResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Send SMS reminders for tomorrow's events",
)
async def send_reminders(
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderRunResponse:
    return await service.send_reminders()
