"""
Verification code document model.

Maps to the `verification-codes` MongoDB collection.

Used for both two-factor login codes and password reset codes; `purpose`
scopes validation. code_hash stores SHA-256(code) — the plain code is never
stored. A record stops being authoritative once any of consumed_at or
superseded_at is set, once attempts reaches max_attempts, or once expires_at
passes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


class Purpose(str, Enum):
    TWO_FACTOR = "two_factor"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class PurposePolicy:
    """Per-purpose knobs for the single issue/validate path."""

    ttl_minutes: int
    mints_reset_grant: bool = False


PURPOSE_POLICIES: dict[Purpose, PurposePolicy] = {
    Purpose.TWO_FACTOR: PurposePolicy(ttl_minutes=10),
    Purpose.PASSWORD_RESET: PurposePolicy(ttl_minutes=10, mints_reset_grant=True),
}


class VerificationCodeDoc(MongoBaseModel):
    """Document model for the `verification-codes` collection."""

    user_id: str
    email: str
    purpose: Purpose
    code_hash: str
    created_at: datetime
    expires_at: datetime
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=5, ge=1)
    consumed_at: Optional[datetime] = None
    superseded_at: Optional[datetime] = None
    grant_redeemed_at: Optional[datetime] = None

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)
