"""
SMS delivery via Textbelt.

Every attempt is logged to sms_messages: a pending row is written
first, then updated to sent or failed once the provider answers.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import settings
from volunteer_hub.core.security import mask_phone, utcnow
from volunteer_hub.models.sms import SmsMessage, SmsMessageType, SmsStatus

logger = logging.getLogger(__name__)

# US/Canada only: +1 followed by an area code that does not start with 0 or 1
E164_US = re.compile(r"^\+1[2-9]\d{9}$")
_NON_DIGITS = re.compile(r"\D")

DUPLICATE_WINDOW = timedelta(hours=24)


def format_phone_number(raw: str | None) -> str | None:
    """
    Normalise a US/Canada phone number to E.164.

    "(555) 234-5678" -> "+15552345678". Returns None when the input
    cannot be a valid number.
    """
    if not raw:
        return None
    digits = _NON_DIGITS.sub("", raw)
    if len(digits) == 10:
        formatted = f"+1{digits}"
    elif len(digits) == 11 and digits.startswith("1"):
        formatted = f"+{digits}"
    else:
        return None
    return formatted if E164_US.match(formatted) else None


def phone_validation_error(raw: str | None) -> str | None:
    """Human readable reason `raw` is not a valid number, or None."""
    if not raw:
        return None
    digits = _NON_DIGITS.sub("", raw)
    if len(digits) < 10:
        return "Phone number must be 10 digits"
    if len(digits) > 11:
        return "Phone number is too long"
    if len(digits) == 11 and not digits.startswith("1"):
        return "Invalid country code (US/Canada only)"
    if format_phone_number(raw) is None:
        return "Invalid phone number format"
    return None


@dataclass
class SmsResult:
    success: bool
    text_id: str | None = None
    error: str | None = None
    quota_remaining: int | None = None
    skipped: bool = False


class SmsService:
    """Send SMS through Textbelt and keep the sms_messages log."""

    def __init__(self, db: AsyncSession, client: httpx.AsyncClient) -> None:
        self.db = db
        self.client = client

    async def was_recently_sent(self, signup_id: UUID, message_type: SmsMessageType) -> bool:
        result = await self.db.execute(
            select(SmsMessage.id)
            .where(
                SmsMessage.signup_id == signup_id,
                SmsMessage.message_type == message_type,
                SmsMessage.status.in_([SmsStatus.sent, SmsStatus.pending]),
                SmsMessage.created_at > utcnow() - DUPLICATE_WINDOW,
            )
            .limit(1)
        )
        return result.first() is not None

    async def send(
        self,
        to: str,
        message: str,
        signup_id: UUID | None = None,
        event_id: UUID | None = None,
        message_type: SmsMessageType = SmsMessageType.confirmation,
    ) -> SmsResult:
        """
        Send one SMS.

        A message of the same type for the same signup within 24 hours is
        skipped and reported as a success with `skipped=True`.
        """
        if not settings.TEXTBELT_API_KEY:
            logger.error("TEXTBELT_API_KEY not configured")
            return SmsResult(success=False, error="SMS not configured")

        if signup_id is not None and await self.was_recently_sent(signup_id, message_type):
            logger.info("Skipping duplicate %s SMS for signup %s", message_type.value, signup_id)
            return SmsResult(success=True, error="Already sent", skipped=True)

        log = SmsMessage(
            to_phone=to,
            message=message,
            status=SmsStatus.pending,
            message_type=message_type,
            signup_id=signup_id,
            event_id=event_id,
            created_at=utcnow(),
        )
        self.db.add(log)
        await self.db.flush()

        try:
            response = await self.client.post(
                settings.TEXTBELT_URL,
                data={"phone": to, "message": message, "key": settings.TEXTBELT_API_KEY},
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("SMS to %s errored: %s", mask_phone(to), exc)
            log.status = SmsStatus.failed
            log.error_message = str(exc)
            await self.db.flush()
            return SmsResult(success=False, error=str(exc))

        if payload.get("success"):
            log.status = SmsStatus.sent
            log.text_id = str(payload.get("textId")) if payload.get("textId") is not None else None
            log.sent_at = utcnow()
            await self.db.flush()
            logger.info("SMS sent to %s (textId: %s)", mask_phone(to), log.text_id)
            return SmsResult(
                success=True,
                text_id=log.text_id,
                quota_remaining=payload.get("quotaRemaining"),
            )

        error = payload.get("error") or "Unknown error"
        log.status = SmsStatus.failed
        log.error_message = error
        await self.db.flush()
        logger.error("SMS to %s failed: %s", mask_phone(to), error)
        return SmsResult(success=False, error=error)
