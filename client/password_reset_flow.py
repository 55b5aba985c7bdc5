"""
Password reset orchestration (client side).

    idle → lookup → pending → verified → idle
                  ↘ idle  (unknown email; reported as success)

initiate() never tells the caller whether the email belongs to an account,
and both branches are padded to the same minimum duration. The reset grant
returned by a successful verify_code() is the only thing update_password()
sends to prove the code was verified.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from client.protocol import AuthBackend
from config import VerificationSettings
from errors import AppError
from schemas.dto.responses.verification import ActionResult, VerifyResult
from schemas.models.verification_code import Purpose
from shared.datetime_utils import Clock, format_time_remaining, is_expired, utc_now
from shared.logging import get_logger
from shared.validators import normalize_email, validate_password

log = get_logger(__name__)

DEFAULT_MIN_INITIATE_SECONDS = 0.75


class ResetState(str, Enum):
    IDLE = "idle"
    LOOKUP = "lookup"
    PENDING = "pending"
    VERIFIED = "verified"


class PasswordResetFlow:
    def __init__(
        self,
        backend: AuthBackend,
        *,
        language: str = "tr",
        min_initiate_seconds: float = DEFAULT_MIN_INITIATE_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        self._backend = backend
        self._language = language
        self._min_initiate_seconds = min_initiate_seconds
        self._clock = clock

        self.state = ResetState.IDLE
        self.email: Optional[str] = None
        self.user_id: Optional[str] = None
        self.display_name: Optional[str] = None
        self.expires_at: Optional[datetime] = None
        self.time_remaining = ""
        self.attempts_remaining: Optional[int] = None
        self.error: Optional[str] = None
        self.is_verified = False
        self.is_loading = False
        self.reset_grant: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        backend: AuthBackend,
        settings: VerificationSettings,
        *,
        language: str = "tr",
        clock: Clock = utc_now,
    ) -> "PasswordResetFlow":
        return cls(
            backend,
            language=language,
            min_initiate_seconds=settings.reset_min_initiate_seconds,
            clock=clock,
        )

    async def initiate(self, email: str) -> ActionResult:
        """Start a reset for ``email``.

        Returns the same successful result whether or not an account exists;
        only malformed input and dispatch failures are reported.
        """
        try:
            normalized = normalize_email(
                validate_email(email.strip(), check_deliverability=False).normalized
            )
        except EmailNotValidError:
            self.error = "invalid_email"
            return ActionResult(success=False, error="invalid_email", message="Invalid email address")

        self.reset()
        self.email = normalized
        self.state = ResetState.LOOKUP
        self.is_loading = True

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            result = await self._start_reset(normalized)
        finally:
            self.is_loading = False
            remaining = self._min_initiate_seconds - (loop.time() - started)
            if remaining > 0:
                await asyncio.sleep(remaining)

        if not result.success:
            self.error = result.error
        return result

    async def _start_reset(self, email: str) -> ActionResult:
        try:
            profile = await self._backend.find_profile_by_email(email)
            if profile is None:
                log.info("password_reset_unknown_email")
                self.state = ResetState.IDLE
                return ActionResult(success=True)

            issued = await self._backend.generate_verification_code(
                profile.id, email, Purpose.PASSWORD_RESET
            )
            await self._backend.send_verification_email(
                email,
                issued.code,
                user_name=profile.full_name,
                language=self._language,
                purpose=Purpose.PASSWORD_RESET,
            )
        except AppError as e:
            log.warning("password_reset_initiate_failed", reason=e.error_code)
            self.state = ResetState.IDLE
            return ActionResult(success=False, error=e.error_code, message=e.message)
        except Exception as e:
            log.error("password_reset_initiate_error", error_type=type(e).__name__)
            self.state = ResetState.IDLE
            return ActionResult(success=False, error="unknown")

        self.user_id = profile.id
        self.display_name = profile.full_name
        self.expires_at = issued.expires_at
        self.time_remaining = format_time_remaining(issued.expires_at, self._clock())
        self.state = ResetState.PENDING
        log.info("password_reset_code_sent", user_id=profile.id)
        return ActionResult(success=True)

    async def verify_code(self, code: str) -> VerifyResult:
        if self.user_id is None or self.state != ResetState.PENDING:
            return VerifyResult.fail("no_code_found", message="No pending password reset")
        if self.expires_at is not None and is_expired(self.expires_at, self._clock()):
            self.time_remaining = "0:00"
            self.error = "code_expired"
            return VerifyResult.fail("code_expired")

        self.is_loading = True
        self.error = None
        try:
            result = await self._backend.verify_code(self.user_id, code, Purpose.PASSWORD_RESET)
        except Exception as e:
            log.error(
                "password_reset_verify_error",
                user_id=self.user_id,
                error_type=type(e).__name__,
            )
            result = VerifyResult.fail("unknown")
        finally:
            self.is_loading = False

        if result.success:
            self.is_verified = True
            self.reset_grant = result.reset_grant
            self.attempts_remaining = None
            self.state = ResetState.VERIFIED
        elif result.error == "max_attempts_exceeded":
            log.warning("password_reset_locked_out", user_id=self.user_id)
            email = self.email
            self.reset()
            self.email = email
            self.error = result.error
            self.attempts_remaining = 0
        else:
            self.error = result.error
            self.attempts_remaining = result.attempts_remaining
        return result

    async def update_password(self, new_password: str) -> ActionResult:
        if not self.is_verified or self.user_id is None:
            return ActionResult(
                success=False, error="not_verified", message="Verify the reset code first"
            )

        ok, missing = validate_password(new_password)
        if not ok:
            self.error = "weak_password"
            return ActionResult(success=False, error="weak_password", message="; ".join(missing))

        self.is_loading = True
        try:
            result = await self._backend.update_password(
                self.user_id, new_password, self.reset_grant
            )
        except AppError as e:
            log.warning("password_update_failed", user_id=self.user_id, reason=e.error_code)
            self.error = e.error_code
            return ActionResult(success=False, error=e.error_code, message=e.message)
        except Exception as e:
            log.error("password_update_error", user_id=self.user_id, error_type=type(e).__name__)
            self.error = "unknown"
            return ActionResult(success=False, error="unknown")
        finally:
            self.is_loading = False

        if result.success:
            log.info("password_reset_completed", user_id=self.user_id)
            self.reset()
        else:
            self.error = result.error
        return result

    def tick(self) -> str:
        if self.expires_at is not None and self.state == ResetState.PENDING:
            if is_expired(self.expires_at, self._clock()):
                self.time_remaining = "0:00"
                self.error = "code_expired"
            else:
                self.time_remaining = format_time_remaining(self.expires_at, self._clock())
        return self.time_remaining

    def reset(self) -> None:
        self.state = ResetState.IDLE
        self.email = None
        self.user_id = None
        self.display_name = None
        self.expires_at = None
        self.time_remaining = ""
        self.attempts_remaining = None
        self.error = None
        self.is_verified = False
        self.reset_grant = None
