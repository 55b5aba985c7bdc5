"""
Account lookups and two-factor settings.

find_profile_by_email backs the password-reset lookup; it is the caller's
job to keep "not found" indistinguishable from "email sent".
"""

from __future__ import annotations

from typing import Optional

from errors import UserNotFoundError
from repositories.protocol import UserStore
from schemas.models.user import UserDoc
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)


class AccountService:
    def __init__(self, users: UserStore, clock: Clock = utc_now) -> None:
        self._users = users
        self._clock = clock

    async def find_profile_by_email(self, email: str) -> Optional[UserDoc]:
        return await self._users.find_by_email(normalize_email(email))

    async def is_two_factor_enabled(self, user_id: str) -> bool:
        user = await self._users.find_by_id(user_id)
        return bool(user and user.two_factor_enabled)

    async def set_two_factor_enabled(self, user_id: str, enabled: bool) -> bool:
        if not await self._users.set_two_factor_enabled(user_id, enabled, self._clock()):
            raise UserNotFoundError("User not found")
        log.info("two_factor_toggled", user_id=user_id, enabled=enabled)
        return enabled
