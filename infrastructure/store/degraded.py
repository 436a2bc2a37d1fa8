"""Degraded StoreHandle for non-production environments.

Mirrors the subset of the pymongo async collection API the repositories use.
Reads yield empty results; writes are acknowledged but nothing is persisted.
"""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult


class DegradedCursor:
    def sort(self, *args: Any, **kwargs: Any) -> "DegradedCursor":
        return self

    def limit(self, *args: Any) -> "DegradedCursor":
        return self

    def skip(self, *args: Any) -> "DegradedCursor":
        return self

    async def to_list(self, length: Optional[int] = None) -> list:
        return []

    def __aiter__(self) -> "DegradedCursor":
        return self

    async def __anext__(self) -> dict:
        raise StopAsyncIteration


class DegradedCollection:
    def __init__(self, database: str, name: str) -> None:
        self.database_name = database
        self.name = name

    async def find_one(self, *args: Any, **kwargs: Any) -> None:
        return None

    def find(self, *args: Any, **kwargs: Any) -> DegradedCursor:
        return DegradedCursor()

    async def count_documents(self, *args: Any, **kwargs: Any) -> int:
        return 0

    async def find_one_and_update(self, *args: Any, **kwargs: Any) -> None:
        return None

    async def insert_one(self, document: dict, *args: Any, **kwargs: Any) -> InsertOneResult:
        return InsertOneResult(ObjectId(), acknowledged=True)

    async def update_one(self, *args: Any, **kwargs: Any) -> UpdateResult:
        return UpdateResult({"n": 1, "nModified": 1, "ok": 1.0}, acknowledged=True)

    async def update_many(self, *args: Any, **kwargs: Any) -> UpdateResult:
        return UpdateResult({"n": 0, "nModified": 0, "ok": 1.0}, acknowledged=True)

    async def delete_many(self, *args: Any, **kwargs: Any) -> DeleteResult:
        return DeleteResult({"n": 0, "ok": 1.0}, acknowledged=True)

    async def create_index(self, keys: Any, **kwargs: Any) -> str:
        return kwargs.get("name") or "degraded_index"


class DegradedDatabase:
    def __init__(self, name: str) -> None:
        self.name = name

    def __getitem__(self, collection: str) -> DegradedCollection:
        return DegradedCollection(self.name, collection)

    async def command(self, *args: Any, **kwargs: Any) -> dict:
        return {"ok": 1.0}


class DegradedStoreHandle:
    kind = "degraded"

    def database(self, name: str) -> DegradedDatabase:
        return DegradedDatabase(name)
