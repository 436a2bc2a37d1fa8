"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything is built once in the app lifespan
and read back from app.state.
"""

from __future__ import annotations

from fastapi import Request

from infrastructure.store.session import StoreSession
from services.otp.delivery import PasscodeDeliveryService
from services.otp.status import PasscodeStatusService
from services.otp.verifier import PasscodeVerifier


def get_store(request: Request) -> StoreSession:
    return request.app.state.store


def get_verifier(request: Request) -> PasscodeVerifier:
    return request.app.state.verifier


def get_delivery_service(request: Request) -> PasscodeDeliveryService:
    return request.app.state.delivery


def get_status_service(request: Request) -> PasscodeStatusService:
    return request.app.state.status
