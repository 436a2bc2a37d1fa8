"""
Passcode delivery orchestration.

Validates the contact, issues a passcode and hands the message to the
dispatcher. Delivery failures are soft: the passcode stays issued and the
outcome reports ``delivered=False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from bson import ObjectId

from config import OtpSettings
from errors import DeliveryFailedError, ValidationError
from infrastructure.delivery.protocol import (
    STATUS_FAILED,
    DeliveryDispatcher,
    DeliveryResult,
)
from infrastructure.metrics.protocol import MetricsSink
from schemas.models.passcode import CHANNEL_EMAIL, CHANNEL_SMS, Purpose
from services.otp.issuer import IssuedPasscode, PasscodeIssuer
from shared.logging import get_logger
from shared.masking import mask_contact
from shared.validators import normalize_purpose, validate_email, validate_phone_number

log = get_logger(__name__)

_SMS_LABELS = {
    Purpose.VERIFICATION: "verification",
    Purpose.PASSWORD_RESET: "password reset",
    Purpose.LOGIN: "login",
}

_EMAIL_SUBJECTS = {
    Purpose.VERIFICATION: "Verify Your {app} Account",
    Purpose.PASSWORD_RESET: "Reset Your {app} Password",
    Purpose.LOGIN: "Your {app} Login Code",
}


@dataclass(frozen=True)
class DeliveryOutcome:
    otp_id: ObjectId
    expires_at: datetime
    channel: str
    delivered: bool
    status: str
    message_id: Optional[str] = None


def build_sms_message(purpose: Purpose, code: str, settings: OtpSettings) -> str:
    return (
        f"Your {settings.otp_app_name} {_SMS_LABELS[purpose]} code is: {code}. "
        f"Valid for {settings.otp_expiry_minutes} minutes."
    )


def build_email(purpose: Purpose, code: str, settings: OtpSettings) -> tuple[str, str]:
    """Return (subject, body) for an email passcode."""
    subject = _EMAIL_SUBJECTS[purpose].format(app=settings.otp_app_name)
    body = (
        f"Your {_SMS_LABELS[purpose]} code is {code}.\n"
        f"It expires in {settings.otp_expiry_minutes} minutes. "
        f"If you did not request this code, you can ignore this email."
    )
    return subject, body


class PasscodeDeliveryService:
    def __init__(
        self,
        issuer: PasscodeIssuer,
        dispatcher: DeliveryDispatcher,
        metrics: MetricsSink,
        settings: OtpSettings,
    ) -> None:
        self._issuer = issuer
        self._dispatcher = dispatcher
        self._metrics = metrics
        self._settings = settings

    async def send_via_sms(
        self, subject: object, purpose: object, phone: str
    ) -> DeliveryOutcome:
        if not validate_phone_number(phone):
            raise ValidationError(
                "Phone number must be in E.164 format (e.g. +2348012345678)",
                field="phone",
            )
        purpose = normalize_purpose(purpose)
        self._track_request(subject, purpose, CHANNEL_SMS, phone)

        issued = await self._issuer.issue(subject, purpose, contact=phone)
        message = build_sms_message(purpose, issued.code, self._settings)
        result = await self._dispatch(
            CHANNEL_SMS, phone, lambda: self._dispatcher.send_sms(phone, message)
        )
        return self._finish(subject, purpose, CHANNEL_SMS, phone, issued, result)

    async def send_via_email(
        self, subject: object, purpose: object, email: str
    ) -> DeliveryOutcome:
        if not validate_email(email):
            raise ValidationError("Invalid email address", field="email")
        purpose = normalize_purpose(purpose)
        self._track_request(subject, purpose, CHANNEL_EMAIL, email)

        issued = await self._issuer.issue(subject, purpose, contact=email)
        email_subject, body = build_email(purpose, issued.code, self._settings)
        result = await self._dispatch(
            CHANNEL_EMAIL,
            email,
            lambda: self._dispatcher.send_email(email, email_subject, body),
        )
        return self._finish(subject, purpose, CHANNEL_EMAIL, email, issued, result)

    async def _dispatch(
        self,
        channel: str,
        contact: str,
        send: Callable[[], Awaitable[DeliveryResult]],
    ) -> DeliveryResult:
        try:
            return await send()
        except DeliveryFailedError as e:
            log.warning(
                "otp_delivery_failed",
                channel=channel,
                contact=mask_contact(contact),
                provider=e.provider,
                error=e.message,
            )
            return DeliveryResult(status=STATUS_FAILED, provider=e.provider)
        except Exception as e:
            log.error(
                "otp_delivery_error",
                channel=channel,
                contact=mask_contact(contact),
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult(status=STATUS_FAILED)

    def _track_request(
        self, subject: object, purpose: Purpose, channel: str, contact: str
    ) -> None:
        self._metrics.track_event(
            "request",
            "received",
            {
                "subject_id": str(subject),
                "purpose": purpose.value,
                "channel": channel,
                "contact": mask_contact(contact),
            },
        )

    def _finish(
        self,
        subject: object,
        purpose: Purpose,
        channel: str,
        contact: str,
        issued: IssuedPasscode,
        result: DeliveryResult,
    ) -> DeliveryOutcome:
        masked = mask_contact(contact)
        if result.ok:
            log.info(
                "otp_delivered",
                otp_id=str(issued.id),
                channel=channel,
                contact=masked,
                message_id=result.message_id,
            )
        else:
            log.warning(
                "otp_delivery_soft_failure",
                otp_id=str(issued.id),
                channel=channel,
                contact=masked,
                status=result.status,
            )
        self._metrics.track_event(
            "delivery",
            "success" if result.ok else "failure",
            {
                "subject_id": str(subject),
                "purpose": purpose.value,
                "channel": channel,
                "contact": masked,
                "otp_id": str(issued.id),
                "status": result.status,
            },
        )
        return DeliveryOutcome(
            otp_id=issued.id,
            expires_at=issued.expires_at,
            channel=channel,
            delivered=result.ok,
            status=result.status,
            message_id=result.message_id,
        )
