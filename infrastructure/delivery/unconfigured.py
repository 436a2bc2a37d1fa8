"""Dispatcher used when no transport has been wired into the app.

Every send reports ``not_configured`` so the soft-failure path is taken and
the issued passcode stays valid.
"""

from infrastructure.delivery.protocol import STATUS_NOT_CONFIGURED, DeliveryResult
from shared.logging import get_logger
from shared.masking import mask_contact

log = get_logger(__name__)


class UnconfiguredDispatcher:
    async def send_sms(self, contact: str, message: str) -> DeliveryResult:
        log.error(
            "otp_delivery_skipped",
            channel="sms",
            contact=mask_contact(contact),
            reason="dispatcher_not_configured",
        )
        return DeliveryResult(status=STATUS_NOT_CONFIGURED)

    async def send_email(
        self, contact: str, subject: str, body: str
    ) -> DeliveryResult:
        log.error(
            "otp_delivery_skipped",
            channel="email",
            contact=mask_contact(contact),
            reason="dispatcher_not_configured",
        )
        return DeliveryResult(status=STATUS_NOT_CONFIGURED)
