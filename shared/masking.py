"""
Masking helpers for contacts and passcodes in logs and metrics.
"""

from __future__ import annotations

import re
from typing import Optional

_EMAIL_LOCAL_RE = re.compile(r"^(.{0,2})(.*)(@.*)$")


def mask_identifier(value: Optional[str], visible: int = 4) -> Optional[str]:
    """Replace all but the last *visible* characters with ``*``."""
    if value is None:
        return None
    if len(value) <= visible:
        return value
    return "*" * (len(value) - visible) + value[-visible:]


def mask_email(value: Optional[str]) -> Optional[str]:
    """Keep the first two characters of the local part: ``jo***@example.com``."""
    if value is None:
        return None
    match = _EMAIL_LOCAL_RE.match(value)
    if not match:
        return mask_identifier(value)
    return f"{match.group(1)}***{match.group(3)}"


def mask_contact(value: Optional[str]) -> Optional[str]:
    """Mask a phone number or email address."""
    if value is None:
        return None
    if is_email_like(value):
        return mask_email(value)
    return mask_identifier(value)


def mask_code(code: Optional[str]) -> Optional[str]:
    """Only the first two digits of a passcode ever reach the logs."""
    if code is None:
        return None
    return f"{code[:2]}****"


def is_email_like(contact: Optional[str]) -> bool:
    return bool(contact) and "@" in contact
