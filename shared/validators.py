"""
Input validators — framework-agnostic, pure functions.
"""

from __future__ import annotations

import re
from typing import List, Tuple

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate a new account password.

    Rules:
    - At least 8 characters (and at most 128)
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

    Returns:
        Tuple of (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []
    if len(password) < PASSWORD_MIN_LENGTH:
        missing.append("At least 8 characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append("Maximum 128 characters")
    if not re.search(r"[A-Z]", password):
        missing.append("At least one uppercase letter")
    if not re.search(r"[a-z]", password):
        missing.append("At least one lowercase letter")
    if not re.search(r"[0-9]", password):
        missing.append("At least one number")

    return not missing, missing


def normalize_email(email: str) -> str:
    """Lower-case and strip an email address for lookups."""
    return email.strip().lower()
