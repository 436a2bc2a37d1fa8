"""Live StoreHandle over a connected pymongo AsyncMongoClient."""

from typing import Any

from pymongo import AsyncMongoClient


class LiveStoreHandle:
    kind = "live"

    def __init__(self, client: AsyncMongoClient) -> None:
        self._client = client

    @property
    def client(self) -> AsyncMongoClient:
        return self._client

    def database(self, name: str) -> Any:
        return self._client[name]
