"""
Passcode repository — the only code that reads or writes the `otps` collection.

Every call runs through StoreSession.execute_timed with a short timeout;
OTP flows sit in front of a waiting user, so failing fast beats hanging.

Ordering for "newest": created_at descending, ties broken by _id ascending.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from config import DatabaseSettings, OtpSettings
from infrastructure.store.session import StoreSession
from schemas.models.passcode import PasscodeDoc, Purpose
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger
from shared.validators import SubjectId

log = get_logger(__name__)

T = TypeVar("T")

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", ASCENDING)]
OLDEST_FIRST = [("created_at", ASCENDING), ("_id", ASCENDING)]


def _scope(subject: SubjectId, purpose: Purpose) -> dict[str, Any]:
    return {"subject_id": subject, "purpose": purpose.value}


class PasscodeRepository:
    def __init__(
        self,
        session: StoreSession,
        db_settings: DatabaseSettings,
        otp_settings: OtpSettings,
        clock: Clock = utcnow,
    ) -> None:
        self._session = session
        self._db_name = db_settings.otp_db_name
        self._collection_name = db_settings.otp_collection
        self._otp = otp_settings
        self._clock = clock

    async def _run(
        self,
        operation: Callable[[Any], Awaitable[T]],
        name: str,
        timeout_ms: int,
    ) -> T:
        collection = await self._session.collection(
            self._db_name, self._collection_name
        )
        return await self._session.execute_timed(
            lambda: operation(collection), name, timeout_ms
        )

    # ── Reads ────────────────────────────────────────────────────────────────

    async def find_active(
        self, subject: SubjectId, purpose: Purpose
    ) -> Optional[PasscodeDoc]:
        """Newest unused record whose expiry is still in the future."""
        query = {
            **_scope(subject, purpose),
            "used": False,
            "expires_at": {"$gt": self._clock()},
        }
        doc = await self._run(
            lambda c: c.find_one(query, sort=NEWEST_FIRST),
            "otp.find_active",
            self._otp.otp_read_timeout_ms,
        )
        return PasscodeDoc.from_mongo(doc)

    async def find_most_recent(
        self, subject: SubjectId, purpose: Purpose
    ) -> Optional[PasscodeDoc]:
        """Newest record regardless of state."""
        doc = await self._run(
            lambda c: c.find_one(_scope(subject, purpose), sort=NEWEST_FIRST),
            "otp.find_most_recent",
            self._otp.otp_read_timeout_ms,
        )
        return PasscodeDoc.from_mongo(doc)

    async def count_created_since(
        self, subject: SubjectId, purpose: Purpose, since: datetime
    ) -> int:
        query = {**_scope(subject, purpose), "created_at": {"$gt": since}}
        return await self._run(
            lambda c: c.count_documents(query),
            "otp.count_created_since",
            self._otp.otp_read_timeout_ms,
        )

    async def find_oldest_created_since(
        self, subject: SubjectId, purpose: Purpose, since: datetime
    ) -> Optional[PasscodeDoc]:
        query = {**_scope(subject, purpose), "created_at": {"$gt": since}}
        doc = await self._run(
            lambda c: c.find_one(query, sort=OLDEST_FIRST),
            "otp.find_oldest_created_since",
            self._otp.otp_read_timeout_ms,
        )
        return PasscodeDoc.from_mongo(doc)

    async def find_superseded(
        self,
        subject: SubjectId,
        purpose: Purpose,
        code: str,
        active_id: ObjectId,
        created_before: datetime,
    ) -> Optional[PasscodeDoc]:
        """Older, already-used record for the pair that carried *code*."""
        query = {
            **_scope(subject, purpose),
            "_id": {"$ne": active_id},
            "code": code,
            "used": True,
            "created_at": {"$lte": created_before},
        }
        doc = await self._run(
            lambda c: c.find_one(query, sort=NEWEST_FIRST),
            "otp.find_superseded",
            self._otp.otp_read_timeout_ms,
        )
        return PasscodeDoc.from_mongo(doc)

    # ── Writes ───────────────────────────────────────────────────────────────

    async def invalidate_active(self, subject: SubjectId, purpose: Purpose) -> int:
        """Mark every unused record for the pair as used. Returns the count."""
        result = await self._run(
            lambda c: c.update_many(
                {**_scope(subject, purpose), "used": False},
                {"$set": {"used": True, "updated_at": self._clock()}},
            ),
            "otp.invalidate_active",
            self._otp.otp_bulk_timeout_ms,
        )
        return result.modified_count

    async def insert(self, record: PasscodeDoc) -> PasscodeDoc:
        result = await self._run(
            lambda c: c.insert_one(record.to_mongo()),
            "otp.insert",
            self._otp.otp_write_timeout_ms,
        )
        return record.model_copy(update={"id": result.inserted_id})

    async def increment_attempts(self, record_id: ObjectId) -> Optional[int]:
        """Atomically bump the attempt counter and return the new value."""
        doc = await self._run(
            lambda c: c.find_one_and_update(
                {"_id": record_id},
                {"$inc": {"attempts": 1}, "$set": {"updated_at": self._clock()}},
                projection={"attempts": 1},
                return_document=ReturnDocument.AFTER,
            ),
            "otp.increment_attempts",
            self._otp.otp_write_timeout_ms,
        )
        if doc is None:
            return None
        return doc.get("attempts", 0)

    async def mark_used(self, record_id: ObjectId) -> bool:
        result = await self._run(
            lambda c: c.update_one(
                {"_id": record_id},
                {"$set": {"used": True, "updated_at": self._clock()}},
            ),
            "otp.mark_used",
            self._otp.otp_write_timeout_ms,
        )
        return result.modified_count > 0

    # ── Maintenance ──────────────────────────────────────────────────────────

    async def delete_stale(self, used_before: datetime) -> int:
        """Delete expired records and used records last touched before *used_before*."""
        query = {
            "$or": [
                {"expires_at": {"$lt": self._clock()}},
                {"used": True, "updated_at": {"$lt": used_before}},
            ]
        }
        result = await self._run(
            lambda c: c.delete_many(query),
            "otp.delete_stale",
            self._otp.otp_maintenance_timeout_ms,
        )
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._run(
            lambda c: c.create_index(
                [
                    ("subject_id", ASCENDING),
                    ("purpose", ASCENDING),
                    ("created_at", DESCENDING),
                ],
                name="subject_purpose_created",
            ),
            "otp.ensure_index.subject_purpose_created",
            self._otp.otp_maintenance_timeout_ms,
        )
        await self._run(
            lambda c: c.create_index(
                [("subject_id", ASCENDING), ("used", ASCENDING)],
                name="subject_used",
            ),
            "otp.ensure_index.subject_used",
            self._otp.otp_maintenance_timeout_ms,
        )
        log.info("otp_indexes_ensured", collection=self._collection_name)
