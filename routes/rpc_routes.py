"""
Verification RPC endpoints.

POST /rpc/generate_verification_code   — issue a code (plaintext returned for delivery)
POST /rpc/verify_email_code            — validate; always 200 with a VerifyResult
POST /rpc/invalidate_verification_code — best-effort cancel of the active code
POST /rpc/check_two_factor_enabled     — 2FA setting for a user
POST /rpc/toggle_two_factor            — enable/disable 2FA
POST /rpc/find_profile_by_email        — profile lookup for password reset (404 if absent)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_account_service, get_verification_service
from errors import NotFoundError
from schemas.dto.requests.verification import (
    FindProfileRequest,
    GenerateCodeRequest,
    InvalidateCodeRequest,
    ToggleTwoFactorRequest,
    TwoFactorStatusRequest,
    VerifyCodeRequest,
)
from schemas.dto.responses.verification import (
    ActionResult,
    InvalidateResponse,
    IssuedCodeResponse,
    ProfileResponse,
    TwoFactorStatusResponse,
    VerifyResult,
)
from services.account_service import AccountService
from services.verification_service import VerificationService

router = APIRouter(prefix="/rpc", tags=["verification"])


@router.post("/generate_verification_code", response_model=IssuedCodeResponse)
async def generate_verification_code(
    body: GenerateCodeRequest,
    service: VerificationService = Depends(get_verification_service),
) -> IssuedCodeResponse:
    issued = await service.issue_code(body.user_id, body.email, body.purpose, body.expires_minutes)
    return IssuedCodeResponse(code=issued.code, expires_at=issued.expires_at)


@router.post("/verify_email_code", response_model=VerifyResult, response_model_exclude_none=True)
async def verify_email_code(
    body: VerifyCodeRequest,
    service: VerificationService = Depends(get_verification_service),
) -> VerifyResult:
    return await service.validate(body.user_id, body.purpose, body.code)


@router.post("/invalidate_verification_code", response_model=InvalidateResponse)
async def invalidate_verification_code(
    body: InvalidateCodeRequest,
    service: VerificationService = Depends(get_verification_service),
) -> InvalidateResponse:
    return InvalidateResponse(invalidated=await service.invalidate(body.user_id, body.purpose))


@router.post("/check_two_factor_enabled", response_model=TwoFactorStatusResponse)
async def check_two_factor_enabled(
    body: TwoFactorStatusRequest,
    accounts: AccountService = Depends(get_account_service),
) -> TwoFactorStatusResponse:
    return TwoFactorStatusResponse(enabled=await accounts.is_two_factor_enabled(body.user_id))


@router.post("/toggle_two_factor", response_model=ActionResult, response_model_exclude_none=True)
async def toggle_two_factor(
    body: ToggleTwoFactorRequest,
    accounts: AccountService = Depends(get_account_service),
) -> ActionResult:
    enabled = await accounts.set_two_factor_enabled(body.user_id, body.enabled)
    message = (
        "Two-factor authentication enabled"
        if enabled
        else "Two-factor authentication disabled"
    )
    return ActionResult(success=True, message=message)


@router.post("/find_profile_by_email", response_model=ProfileResponse)
async def find_profile_by_email(
    body: FindProfileRequest,
    accounts: AccountService = Depends(get_account_service),
) -> ProfileResponse:
    profile = await accounts.find_profile_by_email(body.email)
    if profile is None:
        raise NotFoundError("Profile not found")
    return ProfileResponse(id=str(profile.id), full_name=profile.full_name)
