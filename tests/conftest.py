"""
Shared fixtures: settings built without touching the environment, an
mongomock-backed client behind a real StoreSession, and a controllable clock.
"""

import os
from unittest.mock import AsyncMock

import pytest

from config import DatabaseSettings, OtpSettings, StoreSettings
from infrastructure.store.session import StoreSession
from tests.fakes import FakeClock, FakeMongoClient, RecordingMetrics

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")


@pytest.fixture
def db_settings():
    return DatabaseSettings(mongodb_uri="mongodb://fake:27017/")


@pytest.fixture
def store_settings():
    return StoreSettings()


@pytest.fixture
def otp_settings():
    return OtpSettings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mongo_client():
    return FakeMongoClient()


@pytest.fixture
def metrics():
    return RecordingMetrics()


@pytest.fixture
async def store_session(store_settings, mongo_client):
    session = StoreSession(
        store_settings,
        mongodb_uri="mongodb://fake:27017/",
        client_factory=lambda: mongo_client,
        sleep=AsyncMock(),
    )
    yield session
    await session.close()


@pytest.fixture
def otp_collection(mongo_client, db_settings):
    return mongo_client[db_settings.otp_db_name][db_settings.otp_collection]
