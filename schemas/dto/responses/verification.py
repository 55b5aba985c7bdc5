"""
Response DTOs shared by the backend endpoints and the client flows.

VerifyResult            — outcome of a code validation (never an exception)
IssuedCodeResponse      — POST /rpc/generate_verification_code
ActionResult            — generic {success, error} shape used by the flows
TwoFactorStatusResponse — POST /rpc/check_two_factor_enabled
ProfileResponse         — POST /rpc/find_profile_by_email
EmailSendResponse       — POST /functions/send-verification-email
InvalidateResponse      — POST /rpc/invalidate_verification_code
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

VerifyError = Literal[
    "no_code_found",
    "code_expired",
    "max_attempts_exceeded",
    "invalid_code",
    "unknown",
]

VERIFY_MESSAGES: dict[str, str] = {
    "no_code_found": "No verification code found",
    "code_expired": "Verification code has expired",
    "max_attempts_exceeded": "Maximum verification attempts exceeded",
    "invalid_code": "Invalid verification code",
    "unknown": "Verification failed",
}


class VerifyResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    error: Optional[VerifyError] = None
    message: Optional[str] = None
    attempts_remaining: Optional[int] = None
    reset_grant: Optional[str] = None

    @classmethod
    def ok(cls, reset_grant: Optional[str] = None) -> "VerifyResult":
        return cls(success=True, message="Code verified successfully", reset_grant=reset_grant)

    @classmethod
    def fail(
        cls,
        error: VerifyError,
        *,
        attempts_remaining: Optional[int] = None,
        message: Optional[str] = None,
    ) -> "VerifyResult":
        return cls(
            success=False,
            error=error,
            message=message or VERIFY_MESSAGES[error],
            attempts_remaining=attempts_remaining,
        )


class IssuedCodeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    expires_at: datetime


class ActionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    error: Optional[str] = None
    message: Optional[str] = None


class TwoFactorStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool


class ProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    full_name: Optional[str] = None


class EmailSendResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message_id: Optional[str] = None
    dev: bool = False


class InvalidateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invalidated: int
