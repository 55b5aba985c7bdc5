"""MongoDB repository for the `users` collection (profile fields only)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.base import to_object_id
from schemas.models.user import UserDoc
from shared.validators import normalize_email

COLLECTION_NAME = "users"


class UserRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        raw = await self._col.find_one({"email": normalize_email(email)})
        return UserDoc.from_mongo(raw)

    async def find_by_id(self, user_id: str) -> Optional[UserDoc]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return UserDoc.from_mongo(await self._col.find_one({"_id": oid}))

    async def set_two_factor_enabled(self, user_id: str, enabled: bool, now: datetime) -> bool:
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = await self._col.update_one(
            {"_id": oid},
            {"$set": {"two_factor_enabled": enabled, "updated_at": now}},
        )
        return result.matched_count == 1

    async def update_password_hash(self, user_id: str, password_hash: str, now: datetime) -> bool:
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = await self._col.update_one(
            {"_id": oid},
            {"$set": {"password_hash": password_hash, "updated_at": now}},
        )
        return result.matched_count == 1

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
