"""
Storage outcomes.

Repositories never raise across their public methods; every call returns a
StorageResult carrying either the value or a StorageError. The router maps
errors to HTTP responses.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

NOT_FOUND = "NOT_FOUND"
MALFORMED_ID = "MALFORMED_ID"
INVALID_DOCUMENT = "INVALID_DOCUMENT"
STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class StorageError:
    """A failure reported by a storage backend."""

    code: str
    message: str
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        """Serialize into the JSON body returned to API callers."""
        return {
            "name": "StorageError",
            "code": self.code,
            "message": self.message,
            "meta": dict(self.meta),
        }


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class StorageResult(Generic[T]):
    """Either a value or a StorageError, never both."""

    value: Optional[T] = None
    error: Optional[StorageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "StorageResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, code: str, message: str, **meta: Any) -> "StorageResult[T]":
        return cls(error=StorageError(code=code, message=message, meta=meta))


def not_found(action: str, todo_id: str) -> StorageResult[Any]:
    return StorageResult.failure(
        NOT_FOUND,
        f"Record to {action} not found.",
        modelName="Todo",
        id=todo_id,
    )


def malformed_id(todo_id: str) -> StorageResult[Any]:
    return StorageResult.failure(
        MALFORMED_ID,
        f"Malformed ObjectID: '{todo_id}' is not a 24-character hex string.",
        modelName="Todo",
        id=todo_id,
    )
