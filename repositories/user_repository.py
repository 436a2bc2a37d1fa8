"""
User repository — subject lookups across user partitions.

User documents live in more than one database (one per user population).
Partitions are searched in the configured order; the first hit wins.
"""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId

from config import DatabaseSettings, OtpSettings
from infrastructure.store.session import StoreSession


class UserRepository:
    def __init__(
        self,
        session: StoreSession,
        db_settings: DatabaseSettings,
        otp_settings: OtpSettings,
    ) -> None:
        self._session = session
        self._partitions = list(db_settings.user_partitions)
        self._collection_name = db_settings.users_collection
        self._otp = otp_settings

    async def find_partition(self, subject_id: ObjectId) -> Optional[str]:
        """Return the name of the partition holding *subject_id*, if any."""
        for partition in self._partitions:
            collection = await self._session.collection(
                partition, self._collection_name
            )
            doc = await self._session.execute_timed(
                lambda: collection.find_one({"_id": subject_id}, {"_id": 1}),
                f"users.find.{partition}",
                self._otp.otp_read_timeout_ms,
            )
            if doc is not None:
                return partition
        return None

    async def set_fields(
        self, partition: str, subject_id: ObjectId, fields: dict[str, Any]
    ) -> bool:
        collection = await self._session.collection(partition, self._collection_name)
        result = await self._session.execute_timed(
            lambda: collection.update_one({"_id": subject_id}, {"$set": fields}),
            f"users.update.{partition}",
            self._otp.otp_write_timeout_ms,
        )
        return result.modified_count > 0
