"""
Verification code issuance and validation.

One generic path serves every purpose; PURPOSE_POLICIES supplies the default
TTL and whether a successful validation mints a reset grant. A configured
code_ttl_minutes overrides the policy TTL; a per-call ttl_minutes overrides both.

Validation order:
1. no active record            → no_code_found
2. now > expires_at            → code_expired        (before attempt counting)
3. attempts >= max_attempts    → max_attempts_exceeded (before comparing)
4. mismatch                    → invalid_code, attempts incremented atomically
5. match                       → consumed atomically, success

A mismatch that uses the last attempt reports max_attempts_exceeded with
attempts_remaining=0 so the caller ends the session straight away.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from errors import RateLimitError
from repositories.protocol import VerificationCodeStore
from schemas.dto.responses.verification import VerifyResult
from schemas.models.verification_code import (
    PURPOSE_POLICIES,
    Purpose,
    VerificationCodeDoc,
)
from services.reset_grants import ResetGrantSigner
from shared.crypto import hash_token, token_matches
from shared.datetime_utils import Clock, ensure_utc, utc_now
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

STALE_CODE_RETENTION = timedelta(days=1)


@dataclass(frozen=True)
class IssuedCode:
    code: str
    expires_at: datetime


class VerificationService:
    def __init__(
        self,
        store: VerificationCodeStore,
        grant_signer: Optional[ResetGrantSigner] = None,
        *,
        code_length: int = 6,
        max_attempts: int = 5,
        max_codes_per_hour: int = 5,
        code_ttl_minutes: Optional[int] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._grants = grant_signer
        self._code_length = code_length
        self._code_ttl_minutes = code_ttl_minutes
        self._max_attempts = max_attempts
        self._max_codes_per_hour = max_codes_per_hour
        self._clock = clock

    async def issue_code(
        self,
        user_id: str,
        email: str,
        purpose: Purpose,
        ttl_minutes: Optional[int] = None,
    ) -> IssuedCode:
        """Issue a fresh code for (user, purpose), superseding earlier ones.

        Raises:
            RateLimitError: too many codes issued for this pair in the last hour.
        """
        now = self._clock()
        recent = await self._store.count_issued_since(user_id, purpose, now - timedelta(hours=1))
        if recent >= self._max_codes_per_hour:
            log.warning(
                "verification_rate_limited",
                user_id=user_id,
                purpose=purpose.value,
                count=recent,
            )
            raise RateLimitError("Too many verification codes requested. Please try again later.")

        ttl = ttl_minutes or self._code_ttl_minutes or PURPOSE_POLICIES[purpose].ttl_minutes
        code = generate_otp_code(self._code_length)
        doc = VerificationCodeDoc(
            user_id=user_id,
            email=normalize_email(email),
            purpose=purpose,
            code_hash=hash_token(code),
            created_at=now,
            expires_at=now + timedelta(minutes=ttl),
            max_attempts=self._max_attempts,
        )
        saved = await self._store.insert_superseding(doc)

        log.info(
            "verification_code_issued",
            user_id=user_id,
            purpose=purpose.value,
            code_id=str(saved.id),
            ttl_minutes=ttl,
        )
        return IssuedCode(code=code, expires_at=saved.expires_at)

    async def validate(self, user_id: str, purpose: Purpose, submitted_code: str) -> VerifyResult:
        record = await self._store.find_latest_active(user_id, purpose)
        now = self._clock()
        precheck = self._precheck(record, now)
        if precheck is not None:
            self._log_failure(user_id, purpose, precheck.error)
            return precheck

        if token_matches(submitted_code, record.code_hash):
            if not await self._store.mark_consumed(record.id, now):
                return await self._settle_lost_race(record, user_id, purpose, now)
            log.info("verification_code_verified", user_id=user_id, purpose=purpose.value)
            return VerifyResult.ok(reset_grant=self._mint_grant(record, purpose))

        updated = await self._store.record_failed_attempt(record.id)
        if updated is None:
            return await self._settle_lost_race(record, user_id, purpose, now)

        remaining = updated.attempts_remaining
        if remaining == 0:
            self._log_failure(user_id, purpose, "max_attempts_exceeded")
            return VerifyResult.fail("max_attempts_exceeded", attempts_remaining=0)

        self._log_failure(user_id, purpose, "invalid_code", attempts_remaining=remaining)
        return VerifyResult.fail("invalid_code", attempts_remaining=remaining)

    async def invalidate(self, user_id: str, purpose: Purpose) -> int:
        """Best-effort invalidation of the outstanding code (session cancelled)."""
        count = await self._store.invalidate_active(user_id, purpose, self._clock())
        log.info(
            "verification_code_invalidated",
            user_id=user_id,
            purpose=purpose.value,
            count=count,
        )
        return count

    async def cleanup_stale_codes(self, retention: timedelta = STALE_CODE_RETENTION) -> int:
        deleted = await self._store.delete_stale(self._clock() - retention)
        log.info("verification_codes_cleaned", deleted=deleted)
        return deleted

    def _precheck(
        self, record: Optional[VerificationCodeDoc], now: datetime
    ) -> Optional[VerifyResult]:
        if record is None:
            return VerifyResult.fail("no_code_found")
        if now > ensure_utc(record.expires_at):
            return VerifyResult.fail("code_expired")
        if record.attempts >= record.max_attempts:
            return VerifyResult.fail("max_attempts_exceeded", attempts_remaining=0)
        return None

    async def _settle_lost_race(
        self,
        record: VerificationCodeDoc,
        user_id: str,
        purpose: Purpose,
        now: datetime,
    ) -> VerifyResult:
        """A conditional write matched nothing: re-read and report why."""
        current = await self._store.find_by_id(record.id)
        if current is None or current.consumed_at or current.superseded_at:
            result = VerifyResult.fail("no_code_found")
        else:
            result = self._precheck(current, now) or VerifyResult.fail(
                "max_attempts_exceeded", attempts_remaining=0
            )
        log.warning(
            "verification_write_conflict",
            user_id=user_id,
            purpose=purpose.value,
            reason=result.error,
        )
        return result

    def _mint_grant(self, record: VerificationCodeDoc, purpose: Purpose) -> Optional[str]:
        if not PURPOSE_POLICIES[purpose].mints_reset_grant:
            return None
        if self._grants is None:
            log.error("reset_grant_signer_missing", user_id=record.user_id)
            return None
        return self._grants.mint(record.user_id, str(record.id))

    @staticmethod
    def _log_failure(user_id: str, purpose: Purpose, reason: Optional[str], **extra) -> None:
        log.warning(
            "verification_code_rejected",
            user_id=user_id,
            purpose=purpose.value,
            reason=reason,
            **extra,
        )
