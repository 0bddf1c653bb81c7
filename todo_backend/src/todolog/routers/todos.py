from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..deps import get_request_context, get_todo_service
from ..schemas import TodoCreate, TodoList, TodoOut, TodoUpdate
from ..todo_service import RequestContext, TodoService

router = APIRouter(
    prefix="/api/v1/todos",
    tags=["todos"],
)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item and record a CREATE activity.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Title missing or empty"},
    },
)
def create_todo(
    payload: TodoCreate,
    service: TodoService = Depends(get_todo_service),
    context: RequestContext = Depends(get_request_context),
) -> TodoOut:
    """
    Create a new Todo.
    """
    created = service.create(payload.title, payload.description, context=context)
    return TodoOut(**created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TodoList,
    summary="List Todos",
    description="List every todo, newest first.",
)
def list_todos(service: TodoService = Depends(get_todo_service)) -> TodoList:
    items = service.list()
    return TodoList(items=[TodoOut(**it) for it in items], total=len(items))


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
def get_todo(todo_id: int, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    return TodoOut(**service.get(todo_id))


def _update(
    todo_id: int, payload: TodoUpdate, service: TodoService, context: RequestContext
) -> TodoOut:
    updated = service.update(todo_id, payload.model_dump(exclude_unset=True), context=context)
    return TodoOut(**updated)


_UPDATE_RESPONSES = {
    200: {"description": "Todo updated"},
    400: {"description": "Empty title or no changes detected"},
    404: {"description": "Todo not found"},
}


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Update the supplied fields of a Todo item. Fields that match the stored "
        "value are ignored; if none differ the request is rejected."
    ),
    responses=_UPDATE_RESPONSES,
)
def put_todo(
    todo_id: int,
    payload: TodoUpdate,
    service: TodoService = Depends(get_todo_service),
    context: RequestContext = Depends(get_request_context),
) -> TodoOut:
    return _update(todo_id, payload, service, context)


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Patch Todo",
    description="Alias of PUT: partially update fields of a Todo item.",
    responses=_UPDATE_RESPONSES,
)
def patch_todo(
    todo_id: int,
    payload: TodoUpdate,
    service: TodoService = Depends(get_todo_service),
    context: RequestContext = Depends(get_request_context),
) -> TodoOut:
    return _update(todo_id, payload, service, context)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item by ID. Its activity history is kept.",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
def delete_todo(
    todo_id: int,
    service: TodoService = Depends(get_todo_service),
    context: RequestContext = Depends(get_request_context),
) -> None:
    """
    Delete a Todo. Returns 204 on success, 404 if not found.
    """
    service.delete(todo_id, context=context)
    return None
