"""
Two-factor login session.

Tracks one pending verification for the signed-in principal:

    idle → pending → verifying → verified
                              ↘ failed  (max attempts; sign out and restart login)

An instance is owned by the login flow and passed to whatever needs it; it
holds a local cache of server state (expiry, attempts) and is never the
source of truth. Every public coroutine returns a value instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from client.protocol import AuthBackend
from config import VerificationSettings
from errors import AppError
from schemas.dto.responses.verification import ActionResult, VerifyResult
from schemas.models.verification_code import Purpose
from shared.datetime_utils import Clock, format_time_remaining, is_expired, utc_now
from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_RESEND_COOLDOWN_SECONDS = 60


class SessionState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingAuth:
    user_id: str
    email: str
    display_name: Optional[str]
    expires_at: datetime


class TwoFactorSession:
    def __init__(
        self,
        backend: AuthBackend,
        *,
        language: str = "tr",
        resend_cooldown_seconds: int = DEFAULT_RESEND_COOLDOWN_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        self._backend = backend
        self._language = language
        self._cooldown = resend_cooldown_seconds
        self._clock = clock

        self.state = SessionState.IDLE
        self.pending: Optional[PendingAuth] = None
        self.is_verifying = False
        self.error: Optional[str] = None
        self.attempts_remaining: Optional[int] = None
        self.time_remaining = ""
        self.last_sent_at: Optional[datetime] = None

        self.two_factor_enabled = False
        self.is_loading_settings = False

    @classmethod
    def from_settings(
        cls,
        backend: AuthBackend,
        settings: VerificationSettings,
        *,
        language: str = "tr",
        clock: Clock = utc_now,
    ) -> "TwoFactorSession":
        return cls(
            backend,
            language=language,
            resend_cooldown_seconds=settings.resend_cooldown_seconds,
            clock=clock,
        )

    @property
    def is_pending(self) -> bool:
        return self.pending is not None

    @property
    def resend_available_in(self) -> int:
        """Whole seconds until resend() is allowed again (0 when allowed)."""
        if self.last_sent_at is None:
            return 0
        elapsed = (self._clock() - self.last_sent_at).total_seconds()
        return max(0, int(self._cooldown - elapsed + 0.999))

    async def initiate(self, user_id: str, email: str, display_name: Optional[str] = None) -> bool:
        """Issue a two_factor code and email it. False leaves no session pending."""
        return await self._send_code(user_id, email, display_name, keep_on_failure=False)

    async def resend(self) -> bool:
        """Send a new code to the same identity, at most once per cooldown window."""
        if self.pending is None:
            self.error = "no_pending_verification"
            return False
        wait = self.resend_available_in
        if wait > 0:
            log.info("two_factor_resend_suppressed", user_id=self.pending.user_id, wait_seconds=wait)
            return False
        pending = self.pending
        return await self._send_code(
            pending.user_id, pending.email, pending.display_name, keep_on_failure=True
        )

    async def submit(self, code: str) -> VerifyResult:
        pending = self.pending
        if pending is None:
            return VerifyResult.fail("no_code_found", message="No pending verification")
        if self.is_verifying:
            return VerifyResult.fail("unknown", message="Verification already in progress")
        if is_expired(pending.expires_at, self._clock()):
            self._flag_expired()
            return VerifyResult.fail("code_expired")

        self.is_verifying = True
        self.state = SessionState.VERIFYING
        self.error = None
        try:
            result = await self._backend.verify_code(pending.user_id, code, Purpose.TWO_FACTOR)
        except Exception as e:
            log.error(
                "two_factor_verify_error",
                user_id=pending.user_id,
                error_type=type(e).__name__,
            )
            result = VerifyResult.fail("unknown")
        finally:
            self.is_verifying = False

        # cancel() or a new initiate() ran while the backend call was in flight
        if self.pending is not pending:
            log.info("two_factor_result_discarded", user_id=pending.user_id, error=result.error)
            return VerifyResult.fail("no_code_found", message="Verification was cancelled")

        if result.success:
            log.info("two_factor_verified", user_id=pending.user_id)
            self._clear()
            self.state = SessionState.VERIFIED
        elif result.error == "max_attempts_exceeded":
            log.warning("two_factor_locked_out", user_id=pending.user_id)
            self._clear()
            self.state = SessionState.FAILED
            self.error = result.error
            self.attempts_remaining = 0
        else:
            self.state = SessionState.PENDING
            self.error = result.error
            self.attempts_remaining = result.attempts_remaining
        return result

    def tick(self) -> str:
        """Refresh the M:SS countdown; flags code_expired locally at zero."""
        if self.pending is not None:
            if is_expired(self.pending.expires_at, self._clock()):
                self._flag_expired()
            else:
                self.time_remaining = format_time_remaining(self.pending.expires_at, self._clock())
        return self.time_remaining

    async def cancel(self) -> None:
        """Abandon the session; the outstanding code is invalidated best-effort."""
        pending = self.pending
        self._clear()
        self.state = SessionState.IDLE
        if pending is None:
            return
        try:
            await self._backend.invalidate_code(pending.user_id, Purpose.TWO_FACTOR)
        except Exception as e:
            log.warning(
                "two_factor_cancel_invalidate_failed",
                user_id=pending.user_id,
                error_type=type(e).__name__,
            )

    async def load_two_factor_status(self, user_id: str) -> bool:
        self.is_loading_settings = True
        try:
            self.two_factor_enabled = await self._backend.check_two_factor_enabled(user_id)
        except Exception as e:
            log.error("two_factor_status_error", user_id=user_id, error_type=type(e).__name__)
        finally:
            self.is_loading_settings = False
        return self.two_factor_enabled

    async def enable_two_factor(self, user_id: str) -> ActionResult:
        return await self._toggle(user_id, True)

    async def disable_two_factor(self, user_id: str) -> ActionResult:
        return await self._toggle(user_id, False)

    async def _toggle(self, user_id: str, enabled: bool) -> ActionResult:
        self.is_loading_settings = True
        try:
            result = await self._backend.toggle_two_factor(user_id, enabled)
        except AppError as e:
            return ActionResult(success=False, error=e.error_code, message=e.message)
        except Exception as e:
            log.error("two_factor_toggle_error", user_id=user_id, error_type=type(e).__name__)
            return ActionResult(success=False, error="unknown")
        finally:
            self.is_loading_settings = False
        if result.success:
            self.two_factor_enabled = enabled
        return result

    async def _send_code(
        self,
        user_id: str,
        email: str,
        display_name: Optional[str],
        *,
        keep_on_failure: bool,
    ) -> bool:
        if self.is_verifying:
            return False
        self.is_verifying = True
        self.error = None
        try:
            issued = await self._backend.generate_verification_code(
                user_id, email, Purpose.TWO_FACTOR
            )
            await self._backend.send_verification_email(
                email,
                issued.code,
                user_name=display_name,
                language=self._language,
                purpose=Purpose.TWO_FACTOR,
            )
        except AppError as e:
            self._initiate_failed(user_id, e.error_code, keep_on_failure)
            return False
        except Exception as e:
            log.error("two_factor_initiate_error", user_id=user_id, error_type=type(e).__name__)
            self._initiate_failed(user_id, "unknown", keep_on_failure)
            return False
        finally:
            self.is_verifying = False

        now = self._clock()
        self.pending = PendingAuth(user_id, email, display_name, issued.expires_at)
        self.state = SessionState.PENDING
        self.attempts_remaining = None
        self.last_sent_at = now
        self.time_remaining = format_time_remaining(issued.expires_at, now)
        log.info("two_factor_code_sent", user_id=user_id)
        return True

    def _initiate_failed(self, user_id: str, error: str, keep_on_failure: bool) -> None:
        log.warning("two_factor_initiate_failed", user_id=user_id, reason=error)
        if not keep_on_failure:
            self._clear()
            self.state = SessionState.IDLE
        self.error = error

    def _flag_expired(self) -> None:
        self.time_remaining = "0:00"
        self.error = "code_expired"

    def _clear(self) -> None:
        self.pending = None
        self.error = None
        self.attempts_remaining = None
        self.time_remaining = ""
        self.last_sent_at = None
