"""
Random code generators — pure, side-effect-free functions.

Numeric codes keep entry on a six-box mobile input trivial; the small code
space is compensated by the attempt limit and the short TTL.
"""

from __future__ import annotations

import secrets
import string


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits, leading zeros included.
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))
