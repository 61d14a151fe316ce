from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from bson import ObjectId
from bson.errors import BSONError
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .errors import INVALID_DOCUMENT, STORAGE_UNAVAILABLE, StorageResult, malformed_id, not_found
from .models import TodoEntity
from .repositories import Repository, check_document, to_storage_time, utc_now

logger = logging.getLogger(__name__)


def _driver_error(exc: Union[PyMongoError, BSONError]) -> StorageResult[Any]:
    logger.warning("MongoDB call failed: %s", exc)
    # bson encoding errors (InvalidDocument, DocumentTooLarge) are not PyMongoErrors
    code = INVALID_DOCUMENT if isinstance(exc, BSONError) else STORAGE_UNAVAILABLE
    return StorageResult.failure(code, str(exc), driverError=type(exc).__name__)


def _unreadable(doc: Mapping[str, Any]) -> StorageResult[Any]:
    return StorageResult.failure(
        INVALID_DOCUMENT,
        "Stored document is missing a string `content` or a DateTime `date`.",
        modelName="Todo",
        id=str(doc.get("_id")),
    )


class MongoRepository(Repository):
    """
    MongoDB repository implementing the Repository interface on top of a
    single pymongo collection. Documents are stored as {_id, content, date}.
    """

    name = "mongodb"

    def __init__(self, collection: Collection, client: Optional[MongoClient] = None) -> None:
        self._collection = collection
        self._client = client

    @classmethod
    def connect(cls, url: str, database: str, collection: str) -> "MongoRepository":
        """
        Open a client for the process lifetime. The client connects lazily, so
        an unreachable server surfaces as per-request storage errors.
        """
        client: MongoClient = MongoClient(url, tz_aware=True, serverSelectionTimeoutMS=5000)
        repo = cls(client[database][collection], client=client)
        try:
            repo._collection.create_index([("date", DESCENDING)])
        except PyMongoError as exc:
            logger.warning("Could not ensure index on %s.%s: %s", database, collection, exc)
        return repo

    def _to_entity(self, doc: Mapping[str, Any]) -> Optional[TodoEntity]:
        """Convert a stored document, or return None when it lacks the Todo fields."""
        content = doc.get("content")
        date = doc.get("date")
        if not isinstance(content, str) or not isinstance(date, datetime):
            return None
        return {"id": str(doc["_id"]), "content": content, "date": to_storage_time(date)}

    def _stored(self, doc: Mapping[str, Any]) -> StorageResult[TodoEntity]:
        entity = self._to_entity(doc)
        if entity is None:
            return _unreadable(doc)
        return StorageResult.success(entity)

    def create(self, fields: Mapping[str, Any]) -> StorageResult[TodoEntity]:
        rejected = check_document(fields, creating=True)
        if rejected is not None:
            return rejected
        date = fields.get("date")
        doc: Dict[str, Any] = {
            "content": fields["content"],
            "date": to_storage_time(date) if date is not None else utc_now(),
        }
        try:
            res = self._collection.insert_one(doc)
        except (PyMongoError, BSONError) as exc:
            return _driver_error(exc)
        doc["_id"] = res.inserted_id
        return self._stored(doc)

    def list(self) -> StorageResult[List[TodoEntity]]:
        try:
            docs = list(self._collection.find({}).sort("date", DESCENDING))
        except (PyMongoError, BSONError) as exc:
            return _driver_error(exc)
        entities: List[TodoEntity] = []
        for doc in docs:
            entity = self._to_entity(doc)
            if entity is None:
                return _unreadable(doc)
            entities.append(entity)
        return StorageResult.success(entities)

    def update(self, todo_id: str, fields: Mapping[str, Any]) -> StorageResult[TodoEntity]:
        if not ObjectId.is_valid(todo_id):
            return malformed_id(todo_id)
        rejected = check_document(fields, creating=False)
        if rejected is not None:
            return rejected
        changes = dict(fields)
        if "date" in changes:
            changes["date"] = to_storage_time(changes["date"])
        try:
            if changes:
                doc = self._collection.find_one_and_update(
                    {"_id": ObjectId(todo_id)},
                    {"$set": changes},
                    return_document=ReturnDocument.AFTER,
                )
            else:
                doc = self._collection.find_one({"_id": ObjectId(todo_id)})
        except (PyMongoError, BSONError) as exc:
            return _driver_error(exc)
        if doc is None:
            return not_found("update", todo_id)
        return self._stored(doc)

    def delete(self, todo_id: str) -> StorageResult[TodoEntity]:
        if not ObjectId.is_valid(todo_id):
            return malformed_id(todo_id)
        try:
            doc = self._collection.find_one_and_delete({"_id": ObjectId(todo_id)})
        except (PyMongoError, BSONError) as exc:
            return _driver_error(exc)
        if doc is None:
            return not_found("delete", todo_id)
        return self._stored(doc)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
