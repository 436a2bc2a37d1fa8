"""
Input validators — framework-agnostic, pure functions.
"""

from __future__ import annotations

import re
from typing import Union

from bson import ObjectId

from errors import InvalidSubjectError, ValidationError
from schemas.models.passcode import Purpose

# Opaque subjects cover accounts that do not exist yet (e.g. "temp-1718000000000")
OPAQUE_SUBJECT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:@-]{0,127}$")
PHONE_RE = re.compile(r"^\+\d{10,15}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SubjectId = Union[ObjectId, str]


def normalize_subject(subject: object) -> SubjectId:
    """Return the canonical storage form of a subject identifier.

    Accepts:
    - an ``ObjectId`` instance or its 24-character hex form → ``ObjectId``
    - an opaque id (``temp-<token>``, ``u1``, ...) → the stripped string;
      letters, digits and ``_ . : @ -`` only, so operator keys such as
      ``$gt`` never reach a query

    Raises:
        InvalidSubjectError: for anything else.
    """
    if isinstance(subject, ObjectId):
        return subject
    if not isinstance(subject, str):
        raise InvalidSubjectError()
    candidate = subject.strip()
    if len(candidate) == 24 and ObjectId.is_valid(candidate):
        return ObjectId(candidate)
    if OPAQUE_SUBJECT_RE.match(candidate):
        return candidate
    raise InvalidSubjectError()


def is_temporary_subject(subject: SubjectId) -> bool:
    return isinstance(subject, str)


def validate_phone_number(phone: str) -> bool:
    """Return True for E.164 numbers: ``+`` followed by 10–15 digits."""
    return bool(phone) and bool(PHONE_RE.match(phone))


def validate_email(email: str) -> bool:
    """Return True for a minimal ``local@domain.tld`` shape."""
    return bool(email) and bool(EMAIL_RE.match(email))


def normalize_purpose(purpose: object) -> Purpose:
    """Coerce a purpose value (enum member or its string value) to ``Purpose``.

    Raises:
        ValidationError: for unknown purposes.
    """
    if isinstance(purpose, Purpose):
        return purpose
    try:
        return Purpose(purpose)
    except ValueError:
        raise ValidationError(
            f"Invalid passcode purpose: {purpose!r}", field="purpose"
        ) from None
