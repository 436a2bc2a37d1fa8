"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from pymongo.errors import PyMongoError

from config import AppSettings
from errors import StoreTimeoutError, StoreUnavailableError, register_error_handlers
from infrastructure.delivery.protocol import DeliveryDispatcher
from infrastructure.delivery.unconfigured import UnconfiguredDispatcher
from infrastructure.metrics.protocol import MetricsSink
from infrastructure.metrics.structlog_sink import StructlogMetricsSink
from infrastructure.store.session import StoreSession
from repositories.passcode_repository import PasscodeRepository
from repositories.user_repository import UserRepository
from routes.health_routes import router as health_router
from routes.otp_routes import router as otp_router
from services.otp.delivery import PasscodeDeliveryService
from services.otp.issuer import PasscodeIssuer
from services.otp.status import PasscodeStatusService
from services.otp.subject_updater import SubjectVerificationUpdater
from services.otp.verifier import PasscodeVerifier
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(
    settings: Optional[AppSettings] = None,
    dispatcher: Optional[DeliveryDispatcher] = None,
    metrics: Optional[MetricsSink] = None,
    session: Optional[StoreSession] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()
    setup_logging(settings.logging.log_level, settings.logging.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        store = session or StoreSession(
            settings.store,
            mongodb_uri=settings.db.mongodb_uri,
            is_production=settings.is_production,
        )
        sink = metrics or StructlogMetricsSink()

        passcodes = PasscodeRepository(store, settings.db, settings.otp)
        users = UserRepository(store, settings.db, settings.otp)
        issuer = PasscodeIssuer(passcodes, settings.otp, sink)

        app.state.settings = settings
        app.state.store = store
        app.state.verifier = PasscodeVerifier(
            passcodes, settings.otp, sink, SubjectVerificationUpdater(users)
        )
        app.state.delivery = PasscodeDeliveryService(
            issuer, dispatcher or UnconfiguredDispatcher(), sink, settings.otp
        )
        app.state.status = PasscodeStatusService(passcodes, settings.otp)

        try:
            await passcodes.ensure_indexes()
        except (StoreUnavailableError, StoreTimeoutError, PyMongoError) as e:
            # The app still boots; /health reports the store state
            log.error("startup_ensure_indexes_failed", error=str(e))

        store.start_health_monitor()
        app.state.status.start_periodic_cleanup()
        log.info("app_started", env=settings.env, store_state=store.state.value)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await app.state.status.stop_periodic_cleanup()
        await store.close()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(otp_router)

    return app
