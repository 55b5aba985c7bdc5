"""Storage protocols — services depend on these, not on pymongo collections.

Every mutating method is a single conditional update so that the
read-check-write steps of code validation stay atomic per request.
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from schemas.models.user import UserDoc
from schemas.models.verification_code import Purpose, VerificationCodeDoc


@runtime_checkable
class VerificationCodeStore(Protocol):
    async def insert_superseding(self, doc: VerificationCodeDoc) -> VerificationCodeDoc: ...

    async def find_latest_active(
        self, user_id: str, purpose: Purpose
    ) -> Optional[VerificationCodeDoc]: ...

    async def find_by_id(self, code_id) -> Optional[VerificationCodeDoc]: ...

    async def record_failed_attempt(self, code_id) -> Optional[VerificationCodeDoc]: ...

    async def mark_consumed(self, code_id, now: datetime) -> bool: ...

    async def invalidate_active(self, user_id: str, purpose: Purpose, now: datetime) -> int: ...

    async def count_issued_since(self, user_id: str, purpose: Purpose, since: datetime) -> int: ...

    async def redeem_grant(self, code_id, user_id: str, now: datetime) -> bool: ...

    async def release_grant(self, code_id, user_id: str) -> bool: ...

    async def delete_stale(self, expired_before: datetime) -> int: ...


@runtime_checkable
class UserStore(Protocol):
    async def find_by_email(self, email: str) -> Optional[UserDoc]: ...

    async def find_by_id(self, user_id: str) -> Optional[UserDoc]: ...

    async def set_two_factor_enabled(self, user_id: str, enabled: bool, now: datetime) -> bool: ...

    async def update_password_hash(self, user_id: str, password_hash: str, now: datetime) -> bool: ...
