"""Read-side and maintenance operations over passcode records."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional

from pymongo.errors import PyMongoError

from config import OtpSettings
from errors import StoreTimeoutError, StoreUnavailableError
from repositories.passcode_repository import PasscodeRepository
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger
from shared.validators import normalize_purpose, normalize_subject

log = get_logger(__name__)


class PasscodeStatusService:
    def __init__(
        self,
        repository: PasscodeRepository,
        settings: OtpSettings,
        clock: Clock = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._settings = settings
        self._clock = clock
        self._sleep = sleep
        self._cleanup_task: Optional[asyncio.Task] = None

    async def latest(self, subject: object, purpose: object) -> Optional[dict[str, Any]]:
        """Newest record for the pair, without its code."""
        subject_id = normalize_subject(subject)
        purpose = normalize_purpose(purpose)
        record = await self._repository.find_most_recent(subject_id, purpose)
        if record is None:
            return None
        return record.to_public()

    async def cleanup(self) -> int:
        """Delete expired records and used records past the retention window."""
        used_before = self._clock() - timedelta(
            days=self._settings.otp_used_retention_days
        )
        try:
            deleted = await self._repository.delete_stale(used_before)
        except (StoreUnavailableError, StoreTimeoutError, PyMongoError) as e:
            log.error(
                "otp_cleanup_failed", error=str(e), error_type=type(e).__name__
            )
            return 0
        log.info("otp_cleanup_completed", deleted=deleted)
        return deleted

    # ── Periodic cleanup ─────────────────────────────────────────────────────

    def start_periodic_cleanup(self) -> None:
        """Start the cleanup loop (idempotent; no-op when the interval is 0)."""
        interval = self._settings.otp_cleanup_interval_minutes
        if interval <= 0:
            return
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(
            self._cleanup_loop(interval * 60), name="otp-cleanup"
        )
        self._cleanup_task.add_done_callback(self._on_cleanup_task_done)

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            await self._sleep(interval_seconds)
            await self.cleanup()

    @staticmethod
    def _on_cleanup_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "otp_cleanup_task_failed", error=str(exc), error_type=type(exc).__name__
            )

    async def stop_periodic_cleanup(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
