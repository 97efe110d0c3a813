"""Document store access for feedback and survey records."""

from __future__ import annotations

from typing import Any, Iterable, Protocol

from bson import ObjectId
from pymongo import MongoClient, UpdateOne

from feedback_pipeline.common.models import PENDING_RAW_VALUES


class DocumentStore(Protocol):
    def find_pending(self, collection: str, flag: str) -> list[dict[str, Any]]: ...

    def save(self, collection: str, record_id: str, fields: dict[str, Any]) -> None: ...

    def save_many(self, collection: str, updates: Iterable[tuple[str, dict[str, Any]]]) -> int: ...

    def delete(self, collection: str, record_id: str) -> None: ...


def pending_filter(flag: str) -> dict[str, Any]:
    # {"$in": [None, ...]} also matches documents where the field is absent.
    return {flag: {"$in": list(PENDING_RAW_VALUES)}}


def id_filter(record_id: str) -> dict[str, Any]:
    # Hex string ids are stored as ObjectId by the upstream writer.
    if ObjectId.is_valid(record_id):
        return {"_id": {"$in": [ObjectId(record_id), record_id]}}
    return {"_id": record_id}


class MongoDocumentStore:
    def __init__(self, uri: str, database: str, client: MongoClient | None = None) -> None:
        self.client = client or MongoClient(uri)
        self.db = self.client[database]

    def close(self) -> None:
        self.client.close()

    def find_pending(self, collection: str, flag: str) -> list[dict[str, Any]]:
        return list(self.db[collection].find(pending_filter(flag)))

    def save(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        self.db[collection].update_one(id_filter(record_id), {"$set": fields})

    def save_many(self, collection: str, updates: Iterable[tuple[str, dict[str, Any]]]) -> int:
        operations = [UpdateOne(id_filter(record_id), {"$set": fields}) for record_id, fields in updates]
        if not operations:
            return 0
        result = self.db[collection].bulk_write(operations, ordered=False)
        return result.matched_count

    def delete(self, collection: str, record_id: str) -> None:
        self.db[collection].delete_one(id_filter(record_id))
