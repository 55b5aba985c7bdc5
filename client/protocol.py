"""AuthBackend protocol — the flows depend on this, not on HTTP.

BackendClient implements it over the backend's RPC and function endpoints;
tests substitute in-process fakes.
"""

from typing import Optional, Protocol

from schemas.dto.responses.verification import (
    ActionResult,
    EmailSendResponse,
    IssuedCodeResponse,
    ProfileResponse,
    VerifyResult,
)
from schemas.models.verification_code import Purpose


class AuthBackend(Protocol):
    async def generate_verification_code(
        self,
        user_id: str,
        email: str,
        purpose: Purpose,
        expires_minutes: Optional[int] = None,
    ) -> IssuedCodeResponse: ...

    async def verify_code(self, user_id: str, code: str, purpose: Purpose) -> VerifyResult: ...

    async def invalidate_code(self, user_id: str, purpose: Purpose) -> int: ...

    async def send_verification_email(
        self,
        email: str,
        code: str,
        *,
        user_name: Optional[str] = None,
        language: str = "tr",
        purpose: Purpose = Purpose.TWO_FACTOR,
        expires_minutes: Optional[int] = None,
    ) -> EmailSendResponse: ...

    async def check_two_factor_enabled(self, user_id: str) -> bool: ...

    async def toggle_two_factor(self, user_id: str, enabled: bool) -> ActionResult: ...

    async def find_profile_by_email(self, email: str) -> Optional[ProfileResponse]: ...

    async def update_password(
        self, user_id: str, new_password: str, reset_grant: Optional[str]
    ) -> ActionResult: ...
