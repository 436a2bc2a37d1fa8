"""
Passcode generators — pure, side-effect-free functions.

Codes are drawn from the ``secrets`` CSPRNG.
"""

from __future__ import annotations

import secrets


def otp_code_range(length: int = 6) -> tuple[int, int]:
    """Return the inclusive ``(low, high)`` bounds for a *length*-digit code.

    The lower bound has no leading zero, so every code in the range is
    exactly *length* characters long (6 digits → 100000..999999).
    """
    if length < 1:
        raise ValueError("length must be at least 1")
    low = 10 ** (length - 1) if length > 1 else 0
    return low, 10**length - 1


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure fixed-width numeric OTP.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of *length* decimal digits drawn uniformly from
        :func:`otp_code_range`.
    """
    low, high = otp_code_range(length)
    return str(low + secrets.randbelow(high - low + 1))
