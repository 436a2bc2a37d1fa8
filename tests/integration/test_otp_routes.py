"""Integration tests for the /otp endpoints."""

import re
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app import create_app
from config import AppSettings, DatabaseSettings
from infrastructure.delivery.protocol import STATUS_FAILED, DeliveryResult
from infrastructure.store.session import StoreSession
from tests.fakes import FakeMongoClient, RecordingDispatcher, RecordingMetrics

SUBJECT = "507f1f77bcf86cd799439011"
PHONE = "+2348012345678"


@pytest.fixture
def mongo():
    return FakeMongoClient()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def metrics():
    return RecordingMetrics()


@pytest.fixture
def client(mongo, dispatcher, metrics):
    settings = AppSettings(db=DatabaseSettings(mongodb_uri="mongodb://fake:27017/"))
    session = StoreSession(
        settings.store,
        mongodb_uri=settings.db.mongodb_uri,
        client_factory=lambda: mongo,
        sleep=AsyncMock(),
    )
    app = create_app(settings, dispatcher=dispatcher, metrics=metrics, session=session)
    with TestClient(app) as c:
        yield c


def _sent_code(dispatcher: RecordingDispatcher) -> str:
    _, message = dispatcher.sms[-1]
    return re.search(r"\b(\d{6})\b", message).group(1)


def _request(client, purpose="login", **overrides):
    body = {"subjectId": SUBJECT, "purpose": purpose, "channel": "sms", "contact": PHONE}
    body.update(overrides)
    return client.post("/otp/request", json=body)


def _verify(client, code, purpose="login", subject=SUBJECT):
    return client.post(
        "/otp/verify", json={"subjectId": subject, "purpose": purpose, "code": code}
    )


class TestRequestOtp:
    def test_issues_and_dispatches(self, client, dispatcher, mongo):
        resp = _request(client)

        assert resp.status_code == 201
        body = resp.json()
        assert body["channel"] == "sms"
        assert body["delivered"] is True
        assert body["status"] == "sent"
        assert "code" not in body
        assert len(dispatcher.sms) == 1

        docs = mongo["passcodes"]["otps"].docs
        assert str(docs[0]["_id"]) == body["otp_id"]

    def test_email_channel(self, client, dispatcher):
        resp = _request(client, purpose="verification", channel="email", contact="ada@example.com")
        assert resp.status_code == 201
        assert dispatcher.emails[0][1] == "Verify Your Okada Account"

    def test_cooldown_returns_429(self, client):
        _request(client)
        resp = _request(client)

        assert resp.status_code == 429
        body = resp.json()
        assert body["code"] == "rate_limit_exceeded"
        assert 0 < body["details"]["seconds_remaining"] <= 60

    def test_invalid_subject_returns_400(self, client):
        resp = _request(client, subjectId="not a subject")
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_subject"

    def test_invalid_phone_returns_400(self, client):
        resp = _request(client, contact="0801234")
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["field"] == "phone"

    def test_unknown_purpose_is_rejected(self, client):
        resp = _request(client, purpose="signup")
        assert resp.status_code == 422

    def test_soft_delivery_failure_still_issues(self, client, dispatcher, mongo):
        dispatcher.result = DeliveryResult(status=STATUS_FAILED)
        resp = _request(client)
        assert resp.status_code == 201
        assert resp.json()["delivered"] is False
        assert len(mongo["passcodes"]["otps"].docs) == 1


class TestVerifyOtp:
    def test_full_flow(self, client, dispatcher):
        _request(client)
        code = _sent_code(dispatcher)
        wrong = "000000" if code != "000000" else "111111"

        resp = _verify(client, wrong)
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_code"

        resp = _verify(client, code)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Login successful"}

        resp = _verify(client, code)
        assert resp.status_code == 404
        assert resp.json()["code"] == "code_not_found_or_expired"

    def test_too_many_attempts(self, client, dispatcher):
        _request(client)
        code = _sent_code(dispatcher)
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(5):
            assert _verify(client, wrong).status_code == 400

        resp = _verify(client, wrong)
        assert resp.status_code == 429
        assert resp.json()["code"] == "too_many_attempts"

        assert _verify(client, code).status_code == 404

    def test_no_code_issued(self, client):
        resp = _verify(client, "482913")
        assert resp.status_code == 404

    def test_verification_flags_user(self, client, dispatcher, mongo):
        users = mongo["riders"]["users"]
        users.seed({"_id": ObjectId(SUBJECT)})
        _request(client, purpose="verification")

        resp = _verify(client, _sent_code(dispatcher), purpose="verification")

        assert resp.status_code == 200
        assert users.docs[0]["phone_verified"] is True
        assert users.docs[0]["verified"] is True


class TestLatestOtp:
    def test_returns_latest_without_code(self, client, dispatcher):
        _request(client)

        resp = client.get("/otp/latest", params={"subjectId": SUBJECT, "purpose": "login"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["purpose"] == "login"
        assert body["channel"] == "sms"
        assert body["used"] is False
        assert "code" not in body

    def test_missing_returns_404(self, client):
        resp = client.get("/otp/latest", params={"subjectId": SUBJECT})
        assert resp.status_code == 404


class TestOpenApi:
    def test_error_responses_documented(self, client):
        schema = client.get("/openapi.json").json()

        verify = schema["paths"]["/otp/verify"]["post"]["responses"]
        assert verify["404"]["content"]["application/json"]["schema"]["$ref"].endswith(
            "/ErrorResponse"
        )
        assert {"400", "429", "503", "504"} <= set(verify)
        assert "ErrorResponse" in schema["components"]["schemas"]
