"""
Passcode endpoints.

POST /otp/request — issue a code and hand it to the SMS or email dispatcher
POST /otp/verify  — check a submitted code
GET  /otp/latest  — newest record for a subject and purpose, code stripped

Errors are raised as AppError subclasses and rendered by the global handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dependencies import (
    get_delivery_service,
    get_status_service,
    get_verifier,
)
from errors import InvalidCodeError, NotFoundError
from schemas.dto.requests.otp import OtpRequest, OtpVerifyRequest
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.otp import (
    OtpLatestResponse,
    OtpRequestResponse,
    OtpVerifyResponse,
)
from schemas.models.passcode import CHANNEL_SMS, Purpose
from services.otp.delivery import PasscodeDeliveryService
from services.otp.status import PasscodeStatusService
from services.otp.verifier import PasscodeVerifier

router = APIRouter(prefix="/otp", tags=["otp"])

_SUCCESS_MESSAGES = {
    Purpose.VERIFICATION: "Account verified successfully",
    Purpose.PASSWORD_RESET: "Password reset code verified",
    Purpose.LOGIN: "Login successful",
}

_STORE_ERRORS = {
    503: {"model": ErrorResponse, "description": "Store unavailable"},
    504: {"model": ErrorResponse, "description": "Store operation timed out"},
}


@router.post(
    "/request",
    status_code=201,
    response_model=OtpRequestResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid subject or contact"},
        429: {"model": ErrorResponse, "description": "Cooldown or request cap"},
        **_STORE_ERRORS,
    },
)
async def request_otp(
    body: OtpRequest,
    delivery: PasscodeDeliveryService = Depends(get_delivery_service),
) -> OtpRequestResponse:
    if body.channel == CHANNEL_SMS:
        outcome = await delivery.send_via_sms(body.subject_id, body.purpose, body.contact)
    else:
        outcome = await delivery.send_via_email(body.subject_id, body.purpose, body.contact)

    return OtpRequestResponse(
        otp_id=str(outcome.otp_id),
        expires_at=outcome.expires_at,
        channel=outcome.channel,
        delivered=outcome.delivered,
        status=outcome.status,
        message_id=outcome.message_id,
    )


@router.post(
    "/verify",
    response_model=OtpVerifyResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Wrong code or invalid subject"},
        404: {"model": ErrorResponse, "description": "No active code"},
        429: {"model": ErrorResponse, "description": "Attempt budget exhausted"},
        **_STORE_ERRORS,
    },
)
async def verify_otp(
    body: OtpVerifyRequest,
    verifier: PasscodeVerifier = Depends(get_verifier),
) -> OtpVerifyResponse:
    if not await verifier.verify(body.subject_id, body.code, body.purpose):
        raise InvalidCodeError()
    return OtpVerifyResponse(success=True, message=_SUCCESS_MESSAGES[body.purpose])


@router.get(
    "/latest",
    response_model=OtpLatestResponse,
    responses={404: {"model": ErrorResponse}, **_STORE_ERRORS},
)
async def latest_otp(
    subject_id: str = Query(alias="subjectId"),
    purpose: Purpose = Query(default=Purpose.VERIFICATION),
    status: PasscodeStatusService = Depends(get_status_service),
) -> OtpLatestResponse:
    record = await status.latest(subject_id, purpose)
    if record is None:
        raise NotFoundError("No verification code found")
    return OtpLatestResponse(**record)
