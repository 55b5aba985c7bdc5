"""
Privileged password update.

Runs with the backend's own database credentials, so it re-checks everything
the client claims: input presence, password policy, a valid reset grant for
this user, that the user exists, and that the grant has not been spent.
A grant spent on a failed password write is released again so the user can
retry with it.
"""

from __future__ import annotations

from typing import Optional

from errors import (
    AppError,
    ResetGrantUsedError,
    UserNotFoundError,
    ValidationError,
    WeakPasswordError,
)
from repositories.protocol import UserStore, VerificationCodeStore
from services.reset_grants import ResetGrantSigner
from shared.crypto import hash_password
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger
from shared.validators import validate_password

log = get_logger(__name__)


class CredentialService:
    def __init__(
        self,
        users: UserStore,
        codes: VerificationCodeStore,
        grant_signer: ResetGrantSigner,
        clock: Clock = utc_now,
    ) -> None:
        self._users = users
        self._codes = codes
        self._grants = grant_signer
        self._clock = clock

    async def update_password(
        self, user_id: str, new_password: str, reset_grant: Optional[str]
    ) -> None:
        """Set a new password for *user_id*.

        Raises:
            ValidationError: missing user id or password.
            WeakPasswordError: password fails the policy.
            InvalidResetGrantError: grant missing, forged, expired or foreign.
            UserNotFoundError: no such user.
            ResetGrantUsedError: grant already spent.
        """
        if not user_id or not new_password:
            raise ValidationError("user_id and new_password are required")

        is_valid, missing = validate_password(new_password)
        if not is_valid:
            raise WeakPasswordError(
                "Password does not meet requirements", field="new_password", details=missing
            )

        claims = self._grants.verify(reset_grant or "", user_id)

        user = await self._users.find_by_id(user_id)
        if user is None:
            log.warning("password_update_rejected", user_id=user_id, reason="user_not_found")
            raise UserNotFoundError("User not found")

        now = self._clock()
        if not await self._codes.redeem_grant(claims.code_id, user_id, now):
            log.warning("password_update_rejected", user_id=user_id, reason="grant_used")
            raise ResetGrantUsedError("This password reset has already been used")

        try:
            updated = await self._users.update_password_hash(
                user_id, hash_password(new_password), now
            )
        except Exception:
            await self._release_grant(claims.code_id, user_id)
            raise
        if not updated:
            await self._release_grant(claims.code_id, user_id)
            raise AppError("Failed to update password")

        log.info("password_updated", user_id=user_id)

    async def _release_grant(self, code_id: str, user_id: str) -> None:
        """Give the grant back so the user can retry without a new code."""
        try:
            released = await self._codes.release_grant(code_id, user_id)
        except Exception:
            log.exception("reset_grant_stranded", user_id=user_id, code_id=code_id)
            return
        if released:
            log.error("password_update_failed", user_id=user_id, grant_released=True)
        else:
            log.error("reset_grant_stranded", user_id=user_id, code_id=code_id)
