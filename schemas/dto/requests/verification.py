"""
Request DTOs for the verification RPC and function endpoints.

GenerateCodeRequest          — POST /rpc/generate_verification_code
VerifyCodeRequest            — POST /rpc/verify_email_code
InvalidateCodeRequest        — POST /rpc/invalidate_verification_code
TwoFactorStatusRequest       — POST /rpc/check_two_factor_enabled
ToggleTwoFactorRequest       — POST /rpc/toggle_two_factor
FindProfileRequest           — POST /rpc/find_profile_by_email
SendVerificationEmailRequest — POST /functions/send-verification-email
UpdatePasswordRequest        — POST /functions/update-password
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from schemas.models.verification_code import Purpose


class GenerateCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    email: EmailStr
    purpose: Purpose = Purpose.TWO_FACTOR
    expires_minutes: Optional[int] = Field(default=None, ge=1, le=60)


class VerifyCodeRequest(BaseModel):
    """``code`` is whatever the user typed; format is not checked here."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    code: str = Field(max_length=32)
    purpose: Purpose = Purpose.TWO_FACTOR


class InvalidateCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    purpose: Purpose = Purpose.TWO_FACTOR


class TwoFactorStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)


class ToggleTwoFactorRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    enabled: bool


class FindProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=3)


class SendVerificationEmailRequest(BaseModel):
    """Request body for POST /functions/send-verification-email."""

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    code: str = Field(pattern=r"^\d{4,10}$")
    user_name: Optional[str] = Field(default=None, max_length=120)
    language: str = "tr"
    purpose: Purpose = Purpose.TWO_FACTOR
    # Only when the code was issued with a custom expires_minutes
    expires_minutes: Optional[int] = Field(default=None, ge=1, le=60)


class UpdatePasswordRequest(BaseModel):
    """Request body for POST /functions/update-password.

    ``reset_grant`` is the token returned by a successful password_reset
    verification; the endpoint refuses to act without it.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1)
    new_password: str = Field(min_length=1)
    reset_grant: Optional[str] = None
