"""Unit tests for request/response DTOs."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from schemas.dto.requests.otp import OtpRequest, OtpVerifyRequest
from schemas.dto.responses.common import ErrorResponse, HealthResponse, StoreStatsResponse
from schemas.dto.responses.otp import OtpRequestResponse, OtpVerifyResponse
from schemas.models.passcode import Purpose


class TestOtpRequest:
    def test_camel_case_alias(self):
        req = OtpRequest.model_validate(
            {"subjectId": "u1", "channel": "sms", "contact": "+2348012345678"}
        )
        assert req.subject_id == "u1"
        assert req.purpose is Purpose.VERIFICATION

    def test_field_name_accepted(self):
        req = OtpRequest.model_validate(
            {"subject_id": "u1", "purpose": "login", "channel": "email", "contact": "a@b.co"}
        )
        assert req.purpose is Purpose.LOGIN

    def test_unknown_channel_rejected(self):
        with pytest.raises(PydanticValidationError):
            OtpRequest.model_validate({"subjectId": "u1", "channel": "fax", "contact": "x"})


class TestOtpVerifyRequest:
    def test_requires_code(self):
        with pytest.raises(PydanticValidationError):
            OtpVerifyRequest.model_validate({"subjectId": "u1", "code": ""})

    def test_valid(self):
        req = OtpVerifyRequest.model_validate(
            {"subjectId": "u1", "purpose": "password_reset", "code": "482913"}
        )
        assert req.purpose is Purpose.PASSWORD_RESET


class TestResponses:
    def test_request_response_has_no_code_field(self):
        assert "code" not in OtpRequestResponse.model_fields

    def test_request_response_serializes(self):
        resp = OtpRequestResponse(
            otp_id="507f1f77bcf86cd799439011",
            expires_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            channel="sms",
            delivered=True,
            status="sent",
        )
        data = resp.model_dump(mode="json")
        assert data["expires_at"].startswith("2026-01-01T00:00:00")
        assert data["message_id"] is None

    def test_verify_response(self):
        assert OtpVerifyResponse(success=True, message="ok").success is True

    def test_error_response(self):
        err = ErrorResponse(error="nope", code="not_found")
        assert err.field is None

    def test_health_response(self):
        resp = HealthResponse(
            status="healthy",
            checks={"mongodb": "ok"},
            store_state="healthy",
            consecutive_failures=0,
            stats=StoreStatsResponse(total=0, failed=0, slow=0, failed_pct=0.0, slow_pct=0.0),
        )
        assert resp.model_dump()["stats"]["total"] == 0
