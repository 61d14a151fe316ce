from __future__ import annotations

import logging
from typing import Any, List, Union

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..errors import StorageResult
from ..repositories import Repository
from ..schemas import ErrorOut, TodoCreate, TodoOut, TodoUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["todos"])

_ERROR_RESPONSES = {500: {"model": ErrorOut, "description": "Storage error, including unknown or malformed id"}}


def get_repository(request: Request) -> Repository:
    """
    Dependency returning the process-wide repository opened by the lifespan handler.
    """
    return request.app.state.repository


def _respond(result: StorageResult[Any], action: str, todo_id: str = "") -> Any:
    """
    Map a storage outcome to a response: the value as-is, or the serialized
    error with HTTP 500.
    """
    if result.error is not None:
        logger.warning(
            "%s failed: %s",
            action,
            result.error.message,
            extra={"error_code": result.error.code, "todo_id": todo_id or None},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.error.to_response(),
        )
    return result.value


# PUBLIC_INTERFACE
@router.post(
    "/todo",
    response_model=TodoOut,
    summary="Create Todo",
    description="Create a new Todo item and return the stored record, including its assigned id and date.",
    responses=_ERROR_RESPONSES,
)
def create_todo(payload: TodoCreate, repo: Repository = Depends(get_repository)) -> Union[TodoOut, JSONResponse]:
    """
    Create a new Todo.
    """
    fields = payload.model_dump(exclude_unset=True)
    logger.info("Create todo: %s", fields)
    return _respond(repo.create(fields), "create")


# PUBLIC_INTERFACE
@router.get(
    "/todos",
    response_model=List[TodoOut],
    summary="List Todos",
    description="List every Todo item, most recent date first.",
    responses=_ERROR_RESPONSES,
)
def list_todos(repo: Repository = Depends(get_repository)) -> Union[List[TodoOut], JSONResponse]:
    """
    List all todos.
    """
    return _respond(repo.list(), "list")


# PUBLIC_INTERFACE
@router.put(
    "/todo/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Merge the supplied fields into an existing Todo item and return it as stored. "
        "Fields omitted from the body are left untouched."
    ),
    responses=_ERROR_RESPONSES,
)
def update_todo(
    todo_id: str, payload: TodoUpdate, repo: Repository = Depends(get_repository)
) -> Union[TodoOut, JSONResponse]:
    """
    Update a Todo item. Unknown ids are reported as storage errors (500), not 404.
    """
    fields = payload.model_dump(exclude_unset=True)
    return _respond(repo.update(todo_id, fields), "update", todo_id)


# PUBLIC_INTERFACE
@router.delete(
    "/todo/{todo_id}",
    response_model=TodoOut,
    summary="Delete Todo",
    description="Delete a Todo item by ID and return its state before deletion.",
    responses=_ERROR_RESPONSES,
)
def delete_todo(todo_id: str, repo: Repository = Depends(get_repository)) -> Union[TodoOut, JSONResponse]:
    """
    Delete a Todo permanently.
    """
    return _respond(repo.delete(todo_id), "delete", todo_id)
