"""DeliveryDispatcher protocol — the SMS/email transports live outside this service.

send_sms   → DeliveryResult(status, message_id)
send_email → DeliveryResult(status)

Any status other than "sent" is a soft failure: the passcode has already
been issued and stays valid. Transports may also raise DeliveryFailedError,
which is treated the same way.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class DeliveryResult:
    status: str
    message_id: Optional[str] = None
    provider: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SENT


class DeliveryDispatcher(Protocol):
    async def send_sms(self, contact: str, message: str) -> DeliveryResult: ...

    async def send_email(
        self, contact: str, subject: str, body: str
    ) -> DeliveryResult: ...
