"""
HTTP client for the Todo API, mirroring the browser module in public/crud.js.

Reads degrade gracefully: on any failure `read_data` returns an empty list and
raises the `notice_visible` flag, the counterpart of revealing the page's
"#notices" element. Writes only log their failures and return None.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


# PUBLIC_INTERFACE
class TodoClient:
    """Thin wrapper over the four Todo endpoints."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)
        self.notice_visible = False

    def __enter__(self) -> "TodoClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _write(self, method: str, url: str, what: str, body: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        try:
            response = self._http.request(method, url, json=body, headers=JSON_HEADERS)
            if response.is_error:
                raise httpx.HTTPStatusError(
                    f"Failed to {what} todo", request=response.request, response=response
                )
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            # ValueError covers success responses whose body is not JSON
            logger.error("%s", exc)
            return None

    def create_data(self, text: str) -> Optional[Dict[str, Any]]:
        """Create a todo with `text` as its content."""
        return self._write("POST", "/todo", "create", {"content": text})

    def read_data(self) -> List[Dict[str, Any]]:
        """
        Return all todos, newest first. Never raises for HTTP or transport
        failures; returns [] and sets `notice_visible` instead.
        """
        try:
            response = self._http.get("/todos")
        except httpx.HTTPError as exc:
            logger.error("%s", exc)
            self.notice_visible = True
            return []
        if response.is_error:
            self.notice_visible = True
            return []
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Unreadable todo list: %s", exc)
            self.notice_visible = True
            return []

    def update_data(self, todo_id: str, text: str) -> Optional[Dict[str, Any]]:
        """Replace the content of the todo at `todo_id`."""
        return self._write("PUT", f"/todo/{todo_id}", "update", {"content": text})

    def delete_data(self, todo_id: str) -> Optional[Dict[str, Any]]:
        """Delete the todo at `todo_id`, returning its last state."""
        return self._write("DELETE", f"/todo/{todo_id}", "delete")
