"""
Passcode verification.

verify() looks up the active code for (subject, purpose), counts the
attempt, and compares in constant time. Outcomes:
- no active code                   → NotFoundOrExpiredError
- attempt count above the budget   → code terminated, TooManyAttemptsError
- code of an earlier, used record  → NotFoundOrExpiredError
- any other mismatch               → False
- match                            → code consumed, True

Codes that were already consumed are not "active", so resubmitting one
always lands in NotFoundOrExpiredError, whether or not a newer code exists.
Every branch past the lookup counts an attempt against the active record.
"""

from __future__ import annotations

from typing import Optional

from config import OtpSettings
from errors import NotFoundOrExpiredError, TooManyAttemptsError
from infrastructure.metrics.protocol import MetricsSink
from repositories.passcode_repository import PasscodeRepository
from schemas.models.passcode import PasscodeDoc, Purpose
from services.otp.subject_updater import SubjectVerificationUpdater
from shared.crypto import codes_match
from shared.logging import get_logger, log_with_context
from shared.masking import mask_code
from shared.validators import SubjectId, normalize_purpose, normalize_subject

log = get_logger(__name__)


class PasscodeVerifier:
    def __init__(
        self,
        repository: PasscodeRepository,
        settings: OtpSettings,
        metrics: MetricsSink,
        updater: Optional[SubjectVerificationUpdater] = None,
    ) -> None:
        self._repository = repository
        self._settings = settings
        self._metrics = metrics
        self._updater = updater

    async def verify(self, subject: object, code: str, purpose: object) -> bool:
        subject_id = normalize_subject(subject)
        purpose = normalize_purpose(purpose)
        code = code or ""
        bound = log_with_context(log, subject_id=str(subject_id), purpose=purpose.value)

        record = await self._repository.find_active(subject_id, purpose)
        if record is None:
            bound.warning("otp_verification_not_found", masked_code=mask_code(code))
            self._metrics.track_event(
                "verification",
                "not_found",
                {"subject_id": str(subject_id), "purpose": purpose.value},
            )
            raise NotFoundOrExpiredError()

        attempts = await self._repository.increment_attempts(record.id)
        if attempts is None:
            attempts = record.attempts + 1

        dimensions = {
            "subject_id": str(subject_id),
            "purpose": purpose.value,
            "channel": record.channel,
            "otp_id": str(record.id),
            "attempts": attempts,
        }

        max_attempts = self._settings.otp_max_attempts
        if attempts > max_attempts:
            await self._repository.mark_used(record.id)
            bound.warning(
                "otp_max_attempts_exceeded",
                otp_id=str(record.id),
                attempts=attempts,
                max_attempts=max_attempts,
            )
            self._metrics.track_event("verification", "exhausted", dimensions)
            raise TooManyAttemptsError()

        if not codes_match(code, record.code, self._settings.otp_code_length):
            if await self._is_superseded(subject_id, purpose, code, record):
                bound.info(
                    "otp_verification_superseded",
                    otp_id=str(record.id),
                    attempts=attempts,
                    masked_code=mask_code(code),
                )
                self._metrics.track_event("verification", "superseded", dimensions)
                raise NotFoundOrExpiredError()

            bound.info(
                "otp_verification_mismatch",
                otp_id=str(record.id),
                attempts=attempts,
                masked_code=mask_code(code),
            )
            self._metrics.track_event("verification", "failure", dimensions)
            return False

        await self._repository.mark_used(record.id)
        bound.info("otp_verified", otp_id=str(record.id), attempts=attempts)
        self._metrics.track_event("verification", "success", dimensions)

        if self._updater is not None:
            await self._updater.after_verification(subject_id, purpose, record)
        return True

    async def _is_superseded(
        self, subject_id: SubjectId, purpose: Purpose, code: str, record: PasscodeDoc
    ) -> bool:
        # Only well-formed codes can belong to an earlier record
        if len(code) != self._settings.otp_code_length or not code.isdigit():
            return False
        previous = await self._repository.find_superseded(
            subject_id, purpose, code, record.id, record.created_at
        )
        return previous is not None
