"""
Async HTTP client for the verification backend.

Non-2xx responses are turned back into the typed AppError they were built
from (see errors.error_from_payload); transport failures become BackendError.
Callers above this layer (the flows) translate both into result values.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from config import ClientSettings
from errors import BackendError, NotFoundError, error_from_payload
from infrastructure.http_client import HttpClient
from schemas.dto.responses.verification import (
    ActionResult,
    EmailSendResponse,
    InvalidateResponse,
    IssuedCodeResponse,
    ProfileResponse,
    TwoFactorStatusResponse,
    VerifyResult,
)
from schemas.models.verification_code import Purpose
from shared.logging import get_logger

log = get_logger(__name__)


class BackendClient:
    """
    Client for the verification RPC and function endpoints.

    Usage:
        async with BackendClient.from_settings(ClientSettings()) as backend:
            issued = await backend.generate_verification_code(user_id, email, Purpose.TWO_FACTOR)
    """

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "BackendClient":
        return cls(
            HttpClient(
                timeout=settings.backend_timeout_seconds,
                base_url=settings.backend_url,
                headers={"User-Agent": "tourapp-verification-client/1.0"},
            )
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> dict:
        try:
            response = await self._http.post(path, json=payload)
        except httpx.HTTPError as e:
            log.error("backend_request_failed", path=path, error_type=type(e).__name__)
            raise BackendError("Backend is unreachable") from e
        return self._handle_response(path, response)

    @staticmethod
    def _handle_response(path: str, response: httpx.Response) -> dict:
        """Return the JSON body of a 2xx response or raise the matching AppError."""
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if 200 <= response.status_code < 300:
            if not isinstance(body, dict):
                raise BackendError("Unexpected response from backend")
            return body

        if not isinstance(body, dict):
            body = {}
        if response.status_code == 422 and "detail" in body:
            body = {"error": "Invalid request", "code": "validation_error", "details": body["detail"]}

        err = error_from_payload(response.status_code, body)
        log.warning(
            "backend_request_rejected",
            path=path,
            status_code=response.status_code,
            code=err.error_code,
        )
        raise err

    async def generate_verification_code(
        self,
        user_id: str,
        email: str,
        purpose: Purpose,
        expires_minutes: Optional[int] = None,
    ) -> IssuedCodeResponse:
        payload: dict[str, Any] = {"user_id": user_id, "email": email, "purpose": purpose.value}
        if expires_minutes is not None:
            payload["expires_minutes"] = expires_minutes
        body = await self._post("/rpc/generate_verification_code", payload)
        return IssuedCodeResponse.model_validate(body)

    async def verify_code(self, user_id: str, code: str, purpose: Purpose) -> VerifyResult:
        body = await self._post(
            "/rpc/verify_email_code",
            {"user_id": user_id, "code": code, "purpose": purpose.value},
        )
        return VerifyResult.model_validate(body)

    async def invalidate_code(self, user_id: str, purpose: Purpose) -> int:
        body = await self._post(
            "/rpc/invalidate_verification_code",
            {"user_id": user_id, "purpose": purpose.value},
        )
        return InvalidateResponse.model_validate(body).invalidated

    async def send_verification_email(
        self,
        email: str,
        code: str,
        *,
        user_name: Optional[str] = None,
        language: str = "tr",
        purpose: Purpose = Purpose.TWO_FACTOR,
        expires_minutes: Optional[int] = None,
    ) -> EmailSendResponse:
        payload: dict[str, Any] = {
            "email": email,
            "code": code,
            "language": language,
            "purpose": purpose.value,
        }
        if user_name:
            payload["user_name"] = user_name
        if expires_minutes is not None:
            payload["expires_minutes"] = expires_minutes
        body = await self._post("/functions/send-verification-email", payload)
        return EmailSendResponse.model_validate(body)

    async def check_two_factor_enabled(self, user_id: str) -> bool:
        body = await self._post("/rpc/check_two_factor_enabled", {"user_id": user_id})
        return TwoFactorStatusResponse.model_validate(body).enabled

    async def toggle_two_factor(self, user_id: str, enabled: bool) -> ActionResult:
        body = await self._post(
            "/rpc/toggle_two_factor", {"user_id": user_id, "enabled": enabled}
        )
        return ActionResult.model_validate(body)

    async def find_profile_by_email(self, email: str) -> Optional[ProfileResponse]:
        try:
            body = await self._post("/rpc/find_profile_by_email", {"email": email})
        except NotFoundError:
            return None
        return ProfileResponse.model_validate(body)

    async def update_password(
        self, user_id: str, new_password: str, reset_grant: Optional[str]
    ) -> ActionResult:
        body = await self._post(
            "/functions/update-password",
            {"user_id": user_id, "new_password": new_password, "reset_grant": reset_grant},
        )
        return ActionResult.model_validate(body)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
