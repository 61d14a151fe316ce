from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Body accepted by POST /todo.

    Both fields are optional at this layer; whether `content` is present is
    decided by the storage backend, which assigns `date` when it is omitted.
    Unknown fields are rejected.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"example": {"content": "buy milk"}},
    )

    content: Optional[str] = Field(default=None, description="Task text")
    date: Optional[datetime] = Field(
        default=None, description="Creation timestamp; assigned by storage when omitted"
    )


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Body accepted by PUT /todo/{id}.
    Only the fields present in the request are merged into the stored document.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"example": {"content": "buy oat milk"}},
    )

    content: Optional[str] = Field(default=None, description="Task text")
    date: Optional[datetime] = Field(default=None, description="Creation timestamp")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6530f4d2a1b2c3d4e5f60718",
                "content": "buy milk",
                "date": "2026-10-17T10:15:30.123000Z",
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the todo item")
    content: str = Field(..., description="Task text")
    date: datetime = Field(..., description="Creation timestamp")


# PUBLIC_INTERFACE
class ErrorOut(BaseModel):
    """
    Body of every 500 response from the todo routes.
    """

    name: str = Field(..., description="Error class name")
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable description")
    meta: dict = Field(default_factory=dict, description="Backend-specific details")
