"""
Request DTOs for passcode endpoints.

OtpRequest        — POST /otp/request
OtpVerifyRequest  — POST /otp/verify
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from schemas.models.passcode import Purpose


class OtpRequest(BaseModel):
    """Request body for POST /otp/request.

    ``subject_id`` is a user ObjectId (24 hex chars) or a temporary
    opaque id (e.g. ``temp-<token>``) issued before the account exists.
    """

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(alias="subjectId")
    purpose: Purpose = Purpose.VERIFICATION
    channel: Literal["sms", "email"]
    contact: str


class OtpVerifyRequest(BaseModel):
    """Request body for POST /otp/verify."""

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(alias="subjectId")
    purpose: Purpose = Purpose.VERIFICATION
    code: str = Field(min_length=1, max_length=16)
