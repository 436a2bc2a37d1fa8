"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv().
"""

import pytest

from repositories.passcode_repository import PasscodeRepository
from repositories.user_repository import UserRepository


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def passcode_repository(store_session, db_settings, otp_settings, clock):
    return PasscodeRepository(store_session, db_settings, otp_settings, clock=clock)


@pytest.fixture
def user_repository(store_session, db_settings, otp_settings):
    return UserRepository(store_session, db_settings, otp_settings)
