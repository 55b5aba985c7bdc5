"""
Function endpoints (edge-function style).

POST /functions/send-verification-email — render and send a code email
POST /functions/update-password         — privileged password change, needs a reset grant
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_credential_service, get_email_provider, get_settings
from config import AppSettings
from errors import EmailDeliveryError
from infrastructure.email.protocol import EmailProvider
from schemas.dto.requests.verification import (
    SendVerificationEmailRequest,
    UpdatePasswordRequest,
)
from schemas.dto.responses.verification import ActionResult, EmailSendResponse
from services.credential_service import CredentialService

router = APIRouter(prefix="/functions", tags=["functions"])


@router.post(
    "/send-verification-email",
    response_model=EmailSendResponse,
    response_model_exclude_none=True,
)
async def send_verification_email(
    body: SendVerificationEmailRequest,
    provider: EmailProvider = Depends(get_email_provider),
    settings: AppSettings = Depends(get_settings),
) -> EmailSendResponse:
    result = await provider.send_verification_code(
        body.email,
        body.code,
        display_name=body.user_name,
        language=body.language,
        purpose=body.purpose,
        ttl_minutes=body.expires_minutes or settings.verification.code_ttl_minutes,
    )
    if not result.success:
        # Provider details are logged by the provider, never returned
        raise EmailDeliveryError("Failed to send email")
    return EmailSendResponse(success=True, message_id=result.message_id, dev=result.dev)


@router.post("/update-password", response_model=ActionResult, response_model_exclude_none=True)
async def update_password(
    body: UpdatePasswordRequest,
    credentials: CredentialService = Depends(get_credential_service),
) -> ActionResult:
    await credentials.update_password(body.user_id, body.new_password, body.reset_grant)
    return ActionResult(success=True)
