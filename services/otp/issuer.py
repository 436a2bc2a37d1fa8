"""
Passcode issuance.

issue() supersedes any active code for the (subject, purpose) pair, enforces
the resend cooldown (and the optional request window cap), then stores a
fresh code. The plaintext code is returned to the caller for delivery and
only ever logged masked.

The cooldown check and the insert are not transactional: two concurrent
requests for the same pair can both pass the check. Supersession keeps at
most one of them usable after the next issuance.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from bson import ObjectId

from config import OtpSettings
from errors import RateLimitedError
from infrastructure.metrics.protocol import MetricsSink
from repositories.passcode_repository import PasscodeRepository
from schemas.models.passcode import PasscodeDoc, Purpose
from shared.datetime_utils import Clock, utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.masking import mask_contact
from shared.validators import SubjectId, normalize_purpose, normalize_subject

log = get_logger(__name__)


@dataclass(frozen=True)
class IssuedPasscode:
    id: ObjectId
    code: str
    expires_at: datetime


class PasscodeIssuer:
    def __init__(
        self,
        repository: PasscodeRepository,
        settings: OtpSettings,
        metrics: MetricsSink,
        clock: Clock = utcnow,
        code_generator: Callable[[int], str] = generate_otp_code,
    ) -> None:
        self._repository = repository
        self._settings = settings
        self._metrics = metrics
        self._clock = clock
        self._generate = code_generator

    async def issue(
        self,
        subject: object,
        purpose: object,
        contact: Optional[str] = None,
    ) -> IssuedPasscode:
        """Create a new passcode for (subject, purpose).

        Raises:
            InvalidSubjectError: malformed subject identifier.
            RateLimitedError: cooldown or request window still active.
            StoreUnavailableError / StoreTimeoutError: store failures.
        """
        subject_id = normalize_subject(subject)
        purpose = normalize_purpose(purpose)
        masked_contact = mask_contact(contact)
        bound = log.bind(subject_id=str(subject_id), purpose=purpose.value)

        superseded = await self._repository.invalidate_active(subject_id, purpose)
        if superseded:
            bound.info("otp_superseded", count=superseded)

        now = self._clock()
        await self._enforce_cooldown(subject_id, purpose, now, masked_contact)
        if self._settings.otp_max_requests_per_window:
            await self._enforce_request_window(subject_id, purpose, now)

        code = self._generate(self._settings.otp_code_length)
        record = await self._repository.insert(
            PasscodeDoc(
                subject_id=subject_id,
                purpose=purpose,
                code=code,
                contact=contact,
                issued_at=now,
                expires_at=now + timedelta(minutes=self._settings.otp_expiry_minutes),
                used=False,
                attempts=0,
                created_at=now,
            )
        )

        bound.info(
            "otp_issued",
            otp_id=str(record.id),
            contact=masked_contact,
            expires_at=record.expires_at.isoformat(),
        )
        self._metrics.track_event(
            "issue",
            "success",
            {
                "subject_id": str(subject_id),
                "purpose": purpose.value,
                "channel": record.channel,
                "contact": masked_contact,
                "otp_id": str(record.id),
            },
        )
        return IssuedPasscode(id=record.id, code=code, expires_at=record.expires_at)

    async def _enforce_cooldown(
        self,
        subject_id: SubjectId,
        purpose: Purpose,
        now: datetime,
        masked_contact: Optional[str],
    ) -> None:
        recent = await self._repository.find_most_recent(subject_id, purpose)
        if recent is None:
            return

        cooldown = self._settings.otp_cooldown_seconds
        elapsed = (now - recent.created_at).total_seconds()
        if elapsed >= cooldown:
            return

        seconds_since = int(elapsed)
        remaining = min(cooldown, max(1, cooldown - seconds_since))
        log.warning(
            "otp_cooldown_violation",
            subject_id=str(subject_id),
            purpose=purpose.value,
            contact=masked_contact,
            seconds_since_last_request=seconds_since,
            cooldown_seconds=cooldown,
        )
        self._metrics.track_event(
            "issue",
            "rate_limited",
            {
                "subject_id": str(subject_id),
                "purpose": purpose.value,
                "contact": masked_contact,
                "seconds_remaining": remaining,
            },
        )
        raise RateLimitedError(remaining)

    async def _enforce_request_window(
        self, subject_id: SubjectId, purpose: Purpose, now: datetime
    ) -> None:
        limit = self._settings.otp_max_requests_per_window
        window = timedelta(minutes=self._settings.otp_request_window_minutes)
        since = now - window

        count = await self._repository.count_created_since(subject_id, purpose, since)
        if count < limit:
            return

        oldest = await self._repository.find_oldest_created_since(
            subject_id, purpose, since
        )
        if oldest is None:
            remaining = int(window.total_seconds())
        else:
            leaves_window_at = oldest.created_at + window
            remaining = max(1, math.ceil((leaves_window_at - now).total_seconds()))

        log.warning(
            "otp_request_window_exceeded",
            subject_id=str(subject_id),
            purpose=purpose.value,
            count=count,
            limit=limit,
        )
        self._metrics.track_event(
            "issue",
            "rate_limited",
            {
                "subject_id": str(subject_id),
                "purpose": purpose.value,
                "reason": "request_window",
                "seconds_remaining": remaining,
            },
        )
        raise RateLimitedError(
            remaining,
            message=f"Too many codes requested. Please wait {remaining} seconds",
        )
