from __future__ import annotations

from fastapi import BackgroundTasks, Depends, Request

from .activity_log import ActivityLogger
from .repositories import Store
from .todo_service import RequestContext, TodoService


# PUBLIC_INTERFACE
def get_store(request: Request) -> Store:
    """Return the store opened by the application at startup."""
    return request.app.state.store


# PUBLIC_INTERFACE
def get_activity_logger(store: Store = Depends(get_store)) -> ActivityLogger:
    return ActivityLogger(store.activities)


# PUBLIC_INTERFACE
def get_todo_service(
    background_tasks: BackgroundTasks,
    store: Store = Depends(get_store),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
) -> TodoService:
    """
    Build a TodoService whose activity appends run as background tasks, after
    the response for the current request has been sent.
    """
    return TodoService(store.todos, activity_logger, dispatch=background_tasks.add_task)


# PUBLIC_INTERFACE
def get_request_context(request: Request) -> RequestContext:
    """Extract best-effort provenance (client address and User-Agent) from the request."""
    return RequestContext(
        user_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
