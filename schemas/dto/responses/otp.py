"""
Response DTOs for passcode endpoints.

OtpRequestResponse — POST /otp/request  (201)
OtpVerifyResponse  — POST /otp/verify   (200)
OtpLatestResponse  — GET  /otp/latest   (200)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class OtpRequestResponse(BaseModel):
    """The plaintext code is never part of this response."""

    model_config = ConfigDict(populate_by_name=True)

    otp_id: str
    expires_at: datetime
    channel: str
    delivered: bool
    status: str
    message_id: Optional[str] = None


class OtpVerifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str


class OtpLatestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    subject_id: str
    purpose: str
    channel: str
    issued_at: datetime
    expires_at: datetime
    used: bool
    attempts: int
    created_at: datetime
