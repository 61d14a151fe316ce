from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a stored Todo document, independent
    of the storage backend that produced it.

    Fields:
    - id: Opaque document key (24 hex digits), assigned by storage at creation
    - content: Free-form task text
    - date: Creation timestamp (timezone-aware UTC), defaulted by storage
    """

    id: str
    content: str
    date: datetime
