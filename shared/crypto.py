"""
Constant-time passcode comparison.
"""

from __future__ import annotations

import hmac

PAD_CHAR = " "


def codes_match(submitted: str, stored: str, width: int = 6) -> bool:
    """Compare two passcodes in constant time.

    Both operands are right-padded to a common width before the comparison,
    so short or long submissions go through the same digest comparison
    instead of being rejected early on length.

    Args:
        submitted: The code the user typed.
        stored: The code held on the passcode record.
        width: The configured code length.

    Returns:
        ``True`` when the codes are identical.
    """
    submitted = submitted or ""
    stored = stored or ""
    target = max(width, len(submitted), len(stored))
    same = hmac.compare_digest(
        submitted.ljust(target, PAD_CHAR).encode("utf-8"),
        stored.ljust(target, PAD_CHAR).encode("utf-8"),
    )
    # Padding alone would let "482913 " match "482913"
    return same and len(submitted) == len(stored)
