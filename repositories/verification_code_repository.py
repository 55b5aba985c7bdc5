"""
MongoDB repository for the `verification-codes` collection.

All state transitions are conditional updates: the filter restates the guard
(not consumed, not superseded, attempts below the limit, not expired) so two
near-simultaneous submissions cannot both pass a check before either write
lands.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.base import to_object_id
from schemas.models.verification_code import Purpose, VerificationCodeDoc
from shared.logging import get_logger

log = get_logger(__name__)

COLLECTION_NAME = "verification-codes"


def _active_filter(**extra) -> dict:
    query = {"consumed_at": None, "superseded_at": None}
    query.update(extra)
    return query


class VerificationCodeRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def insert_superseding(self, doc: VerificationCodeDoc) -> VerificationCodeDoc:
        """Supersede active codes for (user, purpose), then insert *doc*."""
        superseded = await self._col.update_many(
            _active_filter(user_id=doc.user_id, purpose=doc.purpose.value),
            {"$set": {"superseded_at": doc.created_at}},
        )
        if superseded.modified_count:
            log.debug(
                "verification_codes_superseded",
                user_id=doc.user_id,
                purpose=doc.purpose.value,
                count=superseded.modified_count,
            )
        data = doc.to_mongo()
        data["purpose"] = doc.purpose.value
        result = await self._col.insert_one(data)
        return doc.model_copy(update={"id": result.inserted_id})

    async def find_latest_active(
        self, user_id: str, purpose: Purpose
    ) -> Optional[VerificationCodeDoc]:
        raw = await self._col.find_one(
            _active_filter(user_id=user_id, purpose=purpose.value),
            sort=[("created_at", DESCENDING)],
        )
        return VerificationCodeDoc.from_mongo(raw)

    async def find_by_id(self, code_id) -> Optional[VerificationCodeDoc]:
        oid = to_object_id(code_id)
        if oid is None:
            return None
        return VerificationCodeDoc.from_mongo(await self._col.find_one({"_id": oid}))

    async def record_failed_attempt(self, code_id) -> Optional[VerificationCodeDoc]:
        """Increment attempts if the code is still active and under its limit.

        Returns the updated document, or None when the guard no longer holds.
        """
        raw = await self._col.find_one_and_update(
            _active_filter(
                _id=to_object_id(code_id),
                **{"$expr": {"$lt": ["$attempts", "$max_attempts"]}},
            ),
            {"$inc": {"attempts": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return VerificationCodeDoc.from_mongo(raw)

    async def mark_consumed(self, code_id, now: datetime) -> bool:
        raw = await self._col.find_one_and_update(
            _active_filter(
                _id=to_object_id(code_id),
                expires_at={"$gte": now},
                **{"$expr": {"$lt": ["$attempts", "$max_attempts"]}},
            ),
            {"$set": {"consumed_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return raw is not None

    async def invalidate_active(self, user_id: str, purpose: Purpose, now: datetime) -> int:
        result = await self._col.update_many(
            _active_filter(user_id=user_id, purpose=purpose.value),
            {"$set": {"superseded_at": now}},
        )
        return result.modified_count

    async def count_issued_since(self, user_id: str, purpose: Purpose, since: datetime) -> int:
        return await self._col.count_documents(
            {"user_id": user_id, "purpose": purpose.value, "created_at": {"$gte": since}}
        )

    async def redeem_grant(self, code_id, user_id: str, now: datetime) -> bool:
        """Spend the reset grant tied to a consumed password_reset code, once."""
        result = await self._col.update_one(
            {
                "_id": to_object_id(code_id),
                "user_id": user_id,
                "purpose": Purpose.PASSWORD_RESET.value,
                "consumed_at": {"$ne": None},
                "grant_redeemed_at": None,
            },
            {"$set": {"grant_redeemed_at": now}},
        )
        return result.modified_count == 1

    async def release_grant(self, code_id, user_id: str) -> bool:
        """Undo redeem_grant when the password write that followed it failed."""
        result = await self._col.update_one(
            {
                "_id": to_object_id(code_id),
                "user_id": user_id,
                "grant_redeemed_at": {"$ne": None},
            },
            {"$set": {"grant_redeemed_at": None}},
        )
        return result.modified_count == 1

    async def delete_stale(self, expired_before: datetime) -> int:
        # Consumed and superseded codes are kept until they expire too, so
        # count_issued_since still sees them for the hourly limit.
        result = await self._col.delete_many({"expires_at": {"$lt": expired_before}})
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("user_id", ASCENDING), ("purpose", ASCENDING), ("created_at", DESCENDING)]
        )
        await self._col.create_index([("expires_at", ASCENDING)])
