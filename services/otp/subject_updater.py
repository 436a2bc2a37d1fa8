"""
Best-effort subject updates after a successful verification.

- purpose "verification": flag the contact channel as verified
  (email when the stored contact looks like an address, phone otherwise)
  plus the overall verified flag.
- purpose "login": stamp the last MFA time and method.

after_verification() never raises: the code has already been consumed and
the verification outcome must stand whatever happens here.
"""

from __future__ import annotations

from typing import Optional

from repositories.user_repository import UserRepository
from schemas.models.passcode import PasscodeDoc, Purpose
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger
from shared.masking import is_email_like
from shared.validators import SubjectId, is_temporary_subject

log = get_logger(__name__)

MFA_METHOD_OTP = "otp"

class SubjectVerificationUpdater:
    def __init__(self, users: UserRepository, clock: Clock = utcnow) -> None:
        self._users = users
        self._clock = clock

    async def after_verification(
        self, subject_id: SubjectId, purpose: Purpose, record: PasscodeDoc
    ) -> None:
        try:
            if purpose is Purpose.VERIFICATION:
                await self.mark_contact_verified(subject_id, record.contact)
            elif purpose is Purpose.LOGIN:
                await self.record_mfa(subject_id)
        except Exception as e:
            log.error(
                "subject_update_failed",
                subject_id=str(subject_id),
                purpose=purpose.value,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def mark_contact_verified(
        self, subject_id: SubjectId, contact: Optional[str]
    ) -> bool:
        partition = await self._locate(subject_id)
        if partition is None:
            return False

        fields: dict = {}
        if is_email_like(contact):
            fields["email_verified"] = True
        elif contact:
            fields["phone_verified"] = True
        fields["verified"] = True
        fields["updated_at"] = self._clock()

        await self._users.set_fields(partition, subject_id, fields)
        log.info(
            "subject_contact_verified",
            subject_id=str(subject_id),
            partition=partition,
            fields=sorted(k for k in fields if k != "updated_at"),
        )
        return True

    async def record_mfa(self, subject_id: SubjectId) -> bool:
        partition = await self._locate(subject_id)
        if partition is None:
            return False

        now = self._clock()
        await self._users.set_fields(
            partition,
            subject_id,
            {"last_mfa_at": now, "last_mfa_method": MFA_METHOD_OTP, "updated_at": now},
        )
        log.info("subject_mfa_recorded", subject_id=str(subject_id), partition=partition)
        return True

    async def _locate(self, subject_id: SubjectId) -> Optional[str]:
        # Temporary subjects have no user document yet
        if is_temporary_subject(subject_id):
            log.info("subject_update_skipped", subject_id=str(subject_id), reason="temporary_subject")
            return None

        partition = await self._users.find_partition(subject_id)
        if partition is None:
            log.warning(
                "subject_update_skipped", subject_id=str(subject_id), reason="not_found"
            )
        return partition
