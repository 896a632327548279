"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from volunteer_hub.models.base import Base, TimestampMixin, UUIDMixin
from volunteer_hub.models.organization import Organization
from volunteer_hub.models.member import MemberStatus, OrgMember, OrgRole, ROLE_RANK
from volunteer_hub.models.magic_link import MagicLinkToken
from volunteer_hub.models.event import VolunteerEvent, VolunteerList
from volunteer_hub.models.signup import VolunteerSignup
from volunteer_hub.models.volunteer_token import VolunteerToken
from volunteer_hub.models.sms import SmsMessage, SmsMessageType, SmsStatus
from volunteer_hub.models.reminder_settings import ReminderSettings

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "Organization",
    "OrgMember",
    "OrgRole",
    "MemberStatus",
    "ROLE_RANK",
    "MagicLinkToken",
    "VolunteerEvent",
    "VolunteerList",
    "VolunteerSignup",
    "VolunteerToken",
    "SmsMessage",
    "SmsMessageType",
    "SmsStatus",
    "ReminderSettings",
]
