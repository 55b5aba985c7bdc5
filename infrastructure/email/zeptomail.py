"""ZeptoMail implementation of EmailProvider.

- async httpx via HttpClient
- injected EmailSettings
- subject/bodies come from the (purpose, language) catalog via Jinja2

A missing API token is a configuration error and raises; a provider-side
failure (bad recipient, 5xx, network) is returned as success=False so the
initiating flow can offer a resend. The issued code stays valid either way.
"""

from typing import Optional

from config import EmailSettings
from errors import EmailNotConfiguredError
from infrastructure.email.content import VerificationEmailRenderer
from infrastructure.email.protocol import EmailSendResult
from infrastructure.http_client import HttpClient
from schemas.models.verification_code import Purpose
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        renderer: Optional[VerificationEmailRenderer] = None,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._renderer = renderer or VerificationEmailRenderer(
            default_language=settings.email_default_language
        )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> EmailSendResult:
        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(_ZEPTO_API_URL, json=payload, headers=headers)
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                error=str(e),
                error_type=type(e).__name__,
            )
            return EmailSendResult(success=False, error="provider_unreachable")

        if response.status_code in (200, 201, 202):
            message_id = _extract_message_id(response)
            log.info("email_sent_success", to_email=to_email, message_id=message_id)
            return EmailSendResult(success=True, message_id=message_id)

        log.error(
            "email_sent_failed",
            to_email=to_email,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return EmailSendResult(success=False, error="delivery_failed")

    async def send_verification_code(
        self,
        email: str,
        code: str,
        *,
        display_name: Optional[str] = None,
        language: str = "tr",
        purpose: Purpose = Purpose.TWO_FACTOR,
        ttl_minutes: int = 10,
    ) -> EmailSendResult:
        if not self._settings.zepto_api_token:
            if self._settings.email_dev_mode:
                log.warning(
                    "email_dev_mode_code",
                    to_email=email,
                    purpose=purpose.value,
                    otp_code=code,
                )
                return EmailSendResult(success=True, dev=True)
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            raise EmailNotConfiguredError("Email provider is not configured")

        rendered = self._renderer.render(
            code,
            purpose,
            language=language,
            display_name=display_name,
            ttl_minutes=ttl_minutes,
        )
        return await self._send(
            email, display_name, rendered.subject, rendered.html_body, rendered.text_body
        )


def _extract_message_id(response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    data = body.get("data") or []
    if data and isinstance(data[0], dict) and data[0].get("message_id"):
        return data[0]["message_id"]
    return body.get("request_id")
