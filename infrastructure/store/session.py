"""Resilient MongoDB store session.

One StoreSession is constructed per process by the application factory and
injected into every repository. Lifecycle:

    disconnected → connecting → healthy ⇄ unhealthy → reconnecting
        → healthy | disconnected (production) | degraded (elsewhere)

- acquire() connects lazily on first use and hands back the cached handle
  while the last known health state is good.
- health_check() pings with its own timeout and caches the result; every
  Nth consecutive failure schedules a background reconnect.
- connect() retries with exponential backoff plus jitter. In production an
  exhausted retry budget raises StoreUnavailableError; elsewhere a degraded
  handle is returned.
- execute_timed() bounds a single operation and feeds the aggregate
  counters. Operation failures are surfaced, never retried here.
- close() cancels the background tasks and closes the client.
"""

from __future__ import annotations

import asyncio
import contextlib
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pymongo import AsyncMongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from config import StoreSettings
from errors import StoreTimeoutError, StoreUnavailableError
from infrastructure.store.degraded import DegradedStoreHandle
from infrastructure.store.live import LiveStoreHandle
from infrastructure.store.protocol import StoreHandle
from shared.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

DEFAULT_OPERATION_TIMEOUT_MS = 3000

_CONNECT_ERRORS = (PyMongoError, asyncio.TimeoutError, OSError)


class StoreState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    RECONNECTING = "reconnecting"
    DEGRADED = "degraded"
    CLOSED = "closed"


@dataclass
class StoreStats:
    """Aggregate operation counters. Approximate under contention."""

    total: int = 0
    failed: int = 0
    slow: int = 0

    def snapshot(self) -> dict[str, Any]:
        def pct(n: int) -> float:
            return round(n / self.total * 100, 2) if self.total else 0.0

        return {
            "total": self.total,
            "failed": self.failed,
            "slow": self.slow,
            "failed_pct": pct(self.failed),
            "slow_pct": pct(self.slow),
        }


class StoreSession:
    def __init__(
        self,
        settings: StoreSettings,
        *,
        mongodb_uri: str = "",
        is_production: bool = False,
        client_factory: Optional[Callable[[], Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
        jitter: Callable[[int, int], int] = random.randint,
    ) -> None:
        self._settings = settings
        self._mongodb_uri = mongodb_uri
        self._is_production = is_production
        self._client_factory = client_factory or self._default_client_factory
        self._sleep = sleep
        self._monotonic = monotonic
        self._jitter = jitter

        self._client: Any = None
        self._handle: Optional[StoreHandle] = None
        self._state = StoreState.DISCONNECTED
        self._healthy = False
        self._last_health_check: Optional[float] = None
        self._consecutive_failures = 0

        self._connect_lock = asyncio.Lock()
        self._connect_generation = 0
        self._reconnect_task: Optional[asyncio.Task] = None
        self._monitor_task: Optional[asyncio.Task] = None

        self.stats = StoreStats()

    # ── Introspection ────────────────────────────────────────────────────────

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def is_healthy(self) -> bool:
        return self._healthy

    @property
    def is_degraded(self) -> bool:
        return self._state is StoreState.DEGRADED

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def describe(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "healthy": self._healthy,
            "degraded": self.is_degraded,
            "consecutive_failures": self._consecutive_failures,
            "stats": self.stats.snapshot(),
        }

    # ── Connection ───────────────────────────────────────────────────────────

    def _default_client_factory(self) -> AsyncMongoClient:
        s = self._settings
        return AsyncMongoClient(
            self._mongodb_uri,
            tz_aware=True,
            connectTimeoutMS=s.store_connect_timeout_ms,
            serverSelectionTimeoutMS=s.store_server_selection_timeout_ms,
            maxPoolSize=s.store_max_pool_size,
            retryWrites=True,
        )

    def backoff_delay_ms(self, attempt: int) -> int:
        """Delay before retrying after failed *attempt* (1-based)."""
        base = self._settings.store_backoff_base_ms * (2**attempt)
        return base + self._jitter(0, self._settings.store_jitter_max_ms)

    async def acquire(self) -> StoreHandle:
        """Return a usable handle, connecting lazily on first use."""
        if self._state is StoreState.CLOSED:
            raise StoreUnavailableError()
        if self._handle is None:
            return await self.connect()
        if self._state is StoreState.DEGRADED:
            return self._handle
        if not self._healthy and self._health_check_due():
            if not await self.health_check(force=True):
                log.warning("store_unhealthy_on_acquire", state=self._state.value)
                return await self.connect()
        return self._handle

    async def connect(self) -> StoreHandle:
        generation = self._connect_generation
        async with self._connect_lock:
            # A cycle finished while we waited on the lock; share its outcome
            if self._connect_generation != generation:
                if self._handle is None:
                    raise StoreUnavailableError()
                return self._handle
            if (
                self._handle is not None
                and self._healthy
                and self._state is StoreState.HEALTHY
            ):
                return self._handle
            try:
                return await self._connect_with_retries()
            finally:
                self._connect_generation += 1

    async def _connect_with_retries(self) -> StoreHandle:
        self._state = (
            StoreState.CONNECTING
            if self._state is StoreState.DISCONNECTED
            else StoreState.RECONNECTING
        )
        # The current client keeps serving until a replacement answers a ping
        previous = self._client

        max_attempts = self._settings.store_max_connect_attempts
        connect_timeout = self._settings.store_connect_timeout_ms / 1000
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            log.info(
                "store_connect_attempt", attempt=attempt, max_attempts=max_attempts
            )
            client = None
            try:
                client = self._client_factory()
                await asyncio.wait_for(client.aconnect(), timeout=connect_timeout)
                await self._ping(client)
            except _CONNECT_ERRORS as e:
                last_error = e
                log.warning(
                    "store_connect_attempt_failed",
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if client is not None and client is not previous:
                    await self._close_client(client)
                if attempt < max_attempts:
                    delay_ms = self.backoff_delay_ms(attempt)
                    log.info("store_connect_retry_scheduled", delay_ms=delay_ms)
                    await self._sleep(delay_ms / 1000)
                continue

            self._client = client
            self._handle = LiveStoreHandle(client)
            self._record_health(True)
            self._state = StoreState.HEALTHY
            log.info("store_connected", attempts=attempt)
            if previous is not None and previous is not client:
                await self._close_client(previous)
            return self._handle

        log.error(
            "store_connect_exhausted",
            attempts=max_attempts,
            error=str(last_error),
            error_type=type(last_error).__name__,
        )
        self._healthy = False
        if previous is not None:
            await self._close_client(previous)
            self._client = None

        if self._is_production:
            self._handle = None
            self._state = StoreState.DISCONNECTED
            raise StoreUnavailableError() from last_error

        log.warning(
            "store_degraded_mode_enabled",
            detail="WARNING: store unreachable, reads return nothing and writes are NOT persisted",
        )
        self._handle = DegradedStoreHandle()
        self._state = StoreState.DEGRADED
        return self._handle

    async def _ping(self, client: Any) -> None:
        await asyncio.wait_for(
            client.admin.command("ping"),
            timeout=self._settings.store_ping_timeout_ms / 1000,
        )

    async def _close_client(self, client: Any) -> None:
        try:
            await client.close()
        except PyMongoError as e:
            log.warning("store_client_close_failed", error=str(e))

    # ── Health ───────────────────────────────────────────────────────────────

    def _health_check_due(self) -> bool:
        if self._last_health_check is None:
            return True
        elapsed = self._monotonic() - self._last_health_check
        return elapsed >= self._settings.store_health_check_interval_seconds

    def _record_health(self, healthy: bool) -> None:
        self._healthy = healthy
        self._last_health_check = self._monotonic()
        if healthy:
            self._consecutive_failures = 0

    async def health_check(self, force: bool = False) -> bool:
        """Ping the store, reusing the cached result inside the check interval."""
        if not force and not self._health_check_due():
            return self._healthy

        self._last_health_check = self._monotonic()
        try:
            if self._client is None:
                raise ConnectionFailure("store client is not connected")
            await self._ping(self._client)
        except _CONNECT_ERRORS as e:
            self._healthy = False
            self._consecutive_failures += 1
            if self._state is StoreState.HEALTHY:
                self._state = StoreState.UNHEALTHY
            log.error(
                "store_health_check_failed",
                error=str(e),
                error_type=type(e).__name__,
                consecutive_failures=self._consecutive_failures,
            )
            threshold = self._settings.store_reconnect_failure_threshold
            if threshold > 0 and self._consecutive_failures % threshold == 0:
                log.warning(
                    "store_reconnect_scheduled",
                    consecutive_failures=self._consecutive_failures,
                )
                self._schedule_reconnect()
            return False

        if not self._healthy and self._consecutive_failures:
            log.info(
                "store_connection_restored",
                after_failures=self._consecutive_failures,
            )
        self._record_health(True)
        if self._state is StoreState.UNHEALTHY:
            self._state = StoreState.HEALTHY
        return True

    # ── Background tasks ─────────────────────────────────────────────────────

    def _schedule_reconnect(self) -> None:
        if self._state is StoreState.CLOSED:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(
            self._reconnect(), name="store-reconnect"
        )
        self._reconnect_task.add_done_callback(self._on_background_task_done)

    async def _reconnect(self) -> None:
        try:
            await self.connect()
        except StoreUnavailableError as e:
            log.error("store_reconnect_failed", error=str(e))
            return
        log.info("store_reconnect_finished", state=self._state.value)

    def start_health_monitor(self) -> None:
        """Start the periodic health check task (idempotent)."""
        if self._monitor_task is not None and not self._monitor_task.done():
            return
        self._monitor_task = asyncio.create_task(
            self._health_monitor_loop(), name="store-health-monitor"
        )
        self._monitor_task.add_done_callback(self._on_background_task_done)

    async def _health_monitor_loop(self) -> None:
        interval = self._settings.store_health_check_interval_seconds
        every = max(1, self._settings.store_stats_log_every)
        cycles = 0
        while True:
            await asyncio.sleep(interval)
            cycles += 1
            try:
                await self.health_check(force=True)
            except Exception as e:
                log.error(
                    "store_health_monitor_error",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            if cycles % every == 0:
                log.info("store_stats", **self.stats.snapshot())

    @staticmethod
    def _on_background_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "store_background_task_failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    # ── Operations ───────────────────────────────────────────────────────────

    async def collection(self, database: str, name: str) -> Any:
        handle = await self.acquire()
        return handle.database(database)[name]

    async def execute_timed(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str,
        timeout_ms: Optional[int] = None,
    ) -> T:
        """Run *operation* bounded by *timeout_ms* and record it in the counters."""
        timeout_ms = timeout_ms or DEFAULT_OPERATION_TIMEOUT_MS
        self.stats.total += 1
        started = self._monotonic()
        try:
            result = await asyncio.wait_for(operation(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            self.stats.failed += 1
            log.error("store_operation_timed_out", operation=name, timeout_ms=timeout_ms)
            raise StoreTimeoutError(name, timeout_ms) from e
        except ConnectionFailure as e:
            self.stats.failed += 1
            log.error(
                "store_operation_unreachable",
                operation=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreUnavailableError() from e
        except Exception as e:
            self.stats.failed += 1
            log.error(
                "store_operation_failed",
                operation=name,
                duration_ms=int((self._monotonic() - started) * 1000),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        duration_ms = (self._monotonic() - started) * 1000
        if duration_ms > timeout_ms * self._settings.store_slow_operation_ratio:
            self.stats.slow += 1
            log.warning(
                "store_operation_slow", operation=name, duration_ms=int(duration_ms)
            )
        return result

    # ── Teardown ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        self._state = StoreState.CLOSED
        for task in (self._monitor_task, self._reconnect_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._monitor_task = None
        self._reconnect_task = None

        if self._client is not None:
            await self._close_client(self._client)
            self._client = None
        self._handle = None
        self._healthy = False
        log.info("store_closed")
