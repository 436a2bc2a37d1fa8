"""
Passcode document model.

Maps to the `otps` MongoDB collection.

One document per issued code. `used` flips to True when the code is
verified, exhausted or superseded; natural expiry leaves it False and is
detected lazily by comparing `expires_at` with the current time.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from schemas.models.base import MongoBaseModel, PySubjectId
from shared.datetime_utils import ensure_utc
from shared.masking import is_email_like


class Purpose(str, Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"
    LOGIN = "login"


CHANNEL_EMAIL = "email"
CHANNEL_SMS = "sms"


class PasscodeDoc(MongoBaseModel):
    """Document model for the `otps` collection."""

    subject_id: PySubjectId
    purpose: Purpose
    code: str
    contact: Optional[str] = None
    issued_at: datetime
    expires_at: datetime
    used: bool = False
    attempts: int = Field(default=0, ge=0)
    created_at: datetime

    @field_validator("issued_at", "expires_at", "created_at", mode="after")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def channel(self) -> str:
        return CHANNEL_EMAIL if is_email_like(self.contact) else CHANNEL_SMS

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_active(self, now: datetime) -> bool:
        return not self.used and not self.is_expired(now)

    def to_mongo(self) -> dict:
        data = super().to_mongo()
        data["purpose"] = self.purpose.value
        return data

    def to_public(self) -> dict[str, Any]:
        """Return the record without its code, safe to hand to callers."""
        return {
            "id": str(self.id) if self.id is not None else None,
            "subject_id": str(self.subject_id),
            "purpose": self.purpose.value,
            "channel": self.channel,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
            "used": self.used,
            "attempts": self.attempts,
            "created_at": self.created_at,
        }
