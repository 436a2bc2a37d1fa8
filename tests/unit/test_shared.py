"""
Unit tests for the shared/ utility modules.

Covers:
- shared.validators      (normalize_subject, normalize_purpose,
                          validate_phone_number, validate_email)
- shared.generators      (otp_code_range, generate_otp_code)
- shared.crypto          (codes_match)
- shared.masking         (mask_contact, mask_email, mask_code)
- shared.datetime_utils  (ensure_utc)
- shared.logging_config  (redact_sensitive_fields, configure_structlog)
"""

from __future__ import annotations

import warnings
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from errors import InvalidSubjectError, ValidationError
from schemas.models.passcode import Purpose
from shared.crypto import codes_match
from shared.datetime_utils import ensure_utc, utcnow
from shared.generators import generate_otp_code, otp_code_range
from shared.logging_config import configure_structlog, redact_sensitive_fields
from shared.masking import is_email_like, mask_code, mask_contact, mask_email
from shared.validators import (
    is_temporary_subject,
    normalize_purpose,
    normalize_subject,
    validate_email,
    validate_phone_number,
)


# ── validators ────────────────────────────────────────────────────────────────


class TestNormalizeSubject:
    def test_objectid_instance(self):
        o = ObjectId()
        assert normalize_subject(o) is o

    def test_hex_string_becomes_objectid(self):
        assert normalize_subject("507f1f77bcf86cd799439011") == ObjectId(
            "507f1f77bcf86cd799439011"
        )

    @pytest.mark.parametrize("value", ["temp-1718000000000", "u1", " temp-abc "])
    def test_opaque_ids_stay_strings(self, value):
        result = normalize_subject(value)
        assert result == value.strip()
        assert is_temporary_subject(result)

    @pytest.mark.parametrize(
        "value",
        ["", "   ", None, 123, {"$gt": ""}, "$where", "has space", "x" * 200],
    )
    def test_rejects_malformed(self, value):
        with pytest.raises(InvalidSubjectError):
            normalize_subject(value)


class TestNormalizePurpose:
    def test_enum_passthrough(self):
        assert normalize_purpose(Purpose.LOGIN) is Purpose.LOGIN

    @pytest.mark.parametrize("value", ["verification", "password_reset", "login"])
    def test_string_values(self, value):
        assert normalize_purpose(value).value == value

    def test_unknown_purpose(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_purpose("signup")
        assert exc_info.value.field == "purpose"


class TestContactValidators:
    @pytest.mark.parametrize("phone", ["+2348012345678", "+14155552671"])
    def test_valid_phone(self, phone):
        assert validate_phone_number(phone)

    @pytest.mark.parametrize("phone", ["", "08012345678", "+123", "+23480123456789012", "+234 801 234"])
    def test_invalid_phone(self, phone):
        assert not validate_phone_number(phone)

    def test_email(self):
        assert validate_email("ada@example.com")
        assert not validate_email("ada@example")
        assert not validate_email("ada example.com")
        assert not validate_email("")


# ── generators ────────────────────────────────────────────────────────────────


class TestGenerators:
    def test_code_range(self):
        assert otp_code_range(6) == (100000, 999999)
        assert otp_code_range(4) == (1000, 9999)
        assert otp_code_range(1) == (0, 9)

    def test_code_range_rejects_zero(self):
        with pytest.raises(ValueError):
            otp_code_range(0)

    @pytest.mark.parametrize("length", [4, 6, 8])
    def test_fixed_width_numeric(self, length):
        for _ in range(50):
            code = generate_otp_code(length)
            assert len(code) == length
            assert code.isdigit()
            assert code[0] != "0"

    def test_default_length(self):
        assert len(generate_otp_code()) == 6


# ── crypto ────────────────────────────────────────────────────────────────────


class TestCodesMatch:
    def test_equal(self):
        assert codes_match("482913", "482913")

    def test_different(self):
        assert not codes_match("482914", "482913")

    @pytest.mark.parametrize("submitted", ["", "4829", "4829130", "482913 "])
    def test_length_mismatch_is_not_a_match(self, submitted):
        assert not codes_match(submitted, "482913")

    def test_none_submitted(self):
        assert not codes_match(None, "482913")


# ── masking ───────────────────────────────────────────────────────────────────


class TestMasking:
    def test_phone_keeps_last_four(self):
        assert mask_contact("+2348012345678") == "**********5678"

    def test_email_keeps_two_local_chars(self):
        assert mask_email("ada@example.com") == "ad***@example.com"
        assert mask_contact("ada@example.com") == "ad***@example.com"

    def test_short_values_unchanged(self):
        assert mask_contact("1234") == "1234"

    def test_none(self):
        assert mask_contact(None) is None
        assert mask_code(None) is None

    def test_code(self):
        assert mask_code("482913") == "48****"

    def test_is_email_like(self):
        assert is_email_like("a@b")
        assert not is_email_like("+2348012345678")
        assert not is_email_like(None)


# ── datetime_utils ────────────────────────────────────────────────────────────


class TestDatetimeUtils:
    def test_naive_assumed_utc(self):
        naive = datetime(2026, 1, 1, 12, 0)
        assert ensure_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_aware_converted(self):
        lagos = timezone(timedelta(hours=1))
        value = datetime(2026, 1, 1, 13, 0, tzinfo=lagos)
        assert ensure_utc(value) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert ensure_utc(value).tzinfo == timezone.utc

    def test_none(self):
        assert ensure_utc(None) is None

    def test_utcnow_is_aware(self):
        assert utcnow().tzinfo is not None


# ── logging redaction ─────────────────────────────────────────────────────────


class TestRedaction:
    def test_plaintext_code_keys_redacted(self):
        out = redact_sensitive_fields(
            None, "info", {"event": "x", "code": "482913", "otp": "482913"}
        )
        assert out["code"] == "***REDACTED***"
        assert out["otp"] == "***REDACTED***"
        assert out["event"] == "x"

    def test_substring_match(self):
        out = redact_sensitive_fields(None, "info", {"access_token": "abc", "db_password": "p"})
        assert out["access_token"] == "***REDACTED***"
        assert out["db_password"] == "***REDACTED***"

    def test_masked_values_pass_through(self):
        out = redact_sensitive_fields(
            None, "info", {"masked_code": "48****", "contact": "****5678"}
        )
        assert out == {"masked_code": "48****", "contact": "****5678"}


class TestConfigureStructlog:
    @pytest.mark.parametrize("log_format", ["console", "json"])
    def test_configures_without_deprecation_warnings(self, log_format):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            configure_structlog(log_format)
