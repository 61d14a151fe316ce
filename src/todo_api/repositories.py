from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId

from .errors import INVALID_DOCUMENT, StorageResult, malformed_id, not_found
from .models import TodoEntity
from .settings import Settings

logger = logging.getLogger(__name__)

TODO_FIELDS = ("content", "date")


def utc_now() -> datetime:
    return to_storage_time(datetime.now(timezone.utc))


def to_storage_time(value: datetime) -> datetime:
    """
    Normalize a timestamp the way the document store keeps it: UTC, millisecond
    precision. Naive values are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def check_document(fields: Mapping[str, Any], creating: bool) -> Optional[StorageResult[Any]]:
    """
    Apply the constraints the Todo document model enforces. Returns a failed
    result for the first violation, or None when the fields are acceptable.
    """
    for name in fields:
        if name not in TODO_FIELDS:
            return StorageResult.failure(
                INVALID_DOCUMENT, f"Unknown argument `{name}`.", modelName="Todo", field=name
            )
    if creating and fields.get("content") is None:
        return StorageResult.failure(
            INVALID_DOCUMENT, "Argument `content` is missing.", modelName="Todo", field="content"
        )
    for name in TODO_FIELDS:
        if name in fields and fields[name] is None:
            return StorageResult.failure(
                INVALID_DOCUMENT, f"Argument `{name}` must not be null.", modelName="Todo", field=name
            )
    if "content" in fields and not isinstance(fields["content"], str):
        return StorageResult.failure(
            INVALID_DOCUMENT, "Argument `content`: expected a string.", modelName="Todo", field="content"
        )
    if "content" in fields:
        # Lone surrogates survive JSON decoding but cannot be stored or served back
        try:
            fields["content"].encode("utf-8")
        except UnicodeEncodeError:
            return StorageResult.failure(
                INVALID_DOCUMENT, "Argument `content`: invalid UTF-8 string.", modelName="Todo", field="content"
            )
    if "date" in fields and not isinstance(fields["date"], datetime):
        return StorageResult.failure(
            INVALID_DOCUMENT, "Argument `date`: expected a DateTime.", modelName="Todo", field="date"
        )
    return None


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for todo storage backends."""

    name: str = "abstract"

    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> StorageResult[TodoEntity]:
        """Insert a new document; `date` is assigned when absent."""

    @abstractmethod
    def list(self) -> StorageResult[List[TodoEntity]]:
        """Return every document, newest `date` first."""

    @abstractmethod
    def update(self, todo_id: str, fields: Mapping[str, Any]) -> StorageResult[TodoEntity]:
        """Merge `fields` into the document at `todo_id` and return it as stored."""

    @abstractmethod
    def delete(self, todo_id: str) -> StorageResult[TodoEntity]:
        """Remove the document at `todo_id` and return its last state."""

    def close(self) -> None:
        """Release backend resources. Called once on application shutdown."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    Keys are generated in the same ObjectId format the MongoDB backend uses.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, TodoEntity] = {}

    def create(self, fields: Mapping[str, Any]) -> StorageResult[TodoEntity]:
        rejected = check_document(fields, creating=True)
        if rejected is not None:
            return rejected
        date = fields.get("date")
        entity: TodoEntity = {
            "id": str(ObjectId()),
            "content": fields["content"],
            "date": to_storage_time(date) if date is not None else utc_now(),
        }
        with self._lock:
            self._items[entity["id"]] = entity
        return StorageResult.success(entity.copy())

    def list(self) -> StorageResult[List[TodoEntity]]:
        with self._lock:
            items = sorted(self._items.values(), key=lambda t: t["date"], reverse=True)
            # Return copies to avoid external mutation
            return StorageResult.success([t.copy() for t in items])

    def update(self, todo_id: str, fields: Mapping[str, Any]) -> StorageResult[TodoEntity]:
        if not ObjectId.is_valid(todo_id):
            return malformed_id(todo_id)
        rejected = check_document(fields, creating=False)
        if rejected is not None:
            return rejected
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None:
                return not_found("update", todo_id)

            updated = existing.copy()
            if "content" in fields:
                updated["content"] = fields["content"]
            if "date" in fields:
                updated["date"] = to_storage_time(fields["date"])
            self._items[todo_id] = updated
            return StorageResult.success(updated.copy())

    def delete(self, todo_id: str) -> StorageResult[TodoEntity]:
        if not ObjectId.is_valid(todo_id):
            return malformed_id(todo_id)
        with self._lock:
            removed = self._items.pop(todo_id, None)
        if removed is None:
            return not_found("delete", todo_id)
        return StorageResult.success(removed)


# PUBLIC_INTERFACE
def build_repository(settings: Settings) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - mongodb: MongoRepository connected to MONGODB_URL
    """
    if settings.persistence_backend == "mongodb":
        from .db import MongoRepository

        logger.info(
            "Using MongoDB backend %s/%s", settings.mongodb_database, settings.mongodb_collection
        )
        return MongoRepository.connect(
            settings.mongodb_url, settings.mongodb_database, settings.mongodb_collection
        )
    logger.info("Using in-memory backend")
    return InMemoryRepository()
