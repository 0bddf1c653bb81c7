from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ..activity_log import ActivityLogger
from ..deps import get_activity_logger
from ..schemas import ActivityOut, ActivityPage, ActivityStats, ClearResult, Message

router = APIRouter(
    prefix="/api/v1/activities",
    tags=["activities"],
)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=ActivityPage,
    summary="List Activities",
    description=(
        "List activity log entries, newest first.\n\n"
        "Query parameters:\n"
        "- page: 1-indexed page number\n"
        "- limit: page size (defaults to ACTIVITY_PAGE_SIZE)\n"
        "- todo_id: only activities for this todo\n\n"
        "Each entry carries the referenced todo's current title, or null if it was deleted."
    ),
)
def list_activities(
    request: Request,
    page: int = Query(1, ge=1, description="1-indexed page number"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of items per page"),
    todo_id: Optional[int] = Query(None, description="Filter by todo id"),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
) -> ActivityPage:
    settings = request.app.state.settings
    page_size = min(limit or settings.activity_page_size, settings.activity_max_page_size)
    result = activity_logger.list(todo_id=todo_id, page=page, limit=page_size)
    return ActivityPage(**result)


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=ActivityStats,
    summary="Activity Statistics",
    description="Total count, today's count, counts per action and per day for the last 7 active days.",
)
def activity_stats(activity_logger: ActivityLogger = Depends(get_activity_logger)) -> ActivityStats:
    return ActivityStats(**activity_logger.stats())


# PUBLIC_INTERFACE
@router.get(
    "/todo/{todo_id}",
    response_model=List[ActivityOut],
    summary="Activities for Todo",
    description="All activities for one todo, newest first, including after the todo was deleted.",
)
def activities_for_todo(
    todo_id: int, activity_logger: ActivityLogger = Depends(get_activity_logger)
) -> List[ActivityOut]:
    return [ActivityOut(**a) for a in activity_logger.get_by_todo_id(todo_id)]


# PUBLIC_INTERFACE
@router.get(
    "/{activity_id}",
    response_model=ActivityOut,
    summary="Get Activity",
    responses={404: {"description": "Activity not found"}},
)
def get_activity(
    activity_id: int, activity_logger: ActivityLogger = Depends(get_activity_logger)
) -> ActivityOut:
    return ActivityOut(**activity_logger.get(activity_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{activity_id}",
    response_model=Message,
    summary="Delete Activity",
    responses={404: {"description": "Activity not found"}},
)
def delete_activity(
    activity_id: int, activity_logger: ActivityLogger = Depends(get_activity_logger)
) -> Message:
    activity_logger.delete(activity_id)
    return Message(message="Activity deleted successfully")


# PUBLIC_INTERFACE
@router.delete(
    "/",
    response_model=ClearResult,
    summary="Clear Activities",
    description="Delete every activity log entry. Irreversible.",
)
def clear_activities(activity_logger: ActivityLogger = Depends(get_activity_logger)) -> ClearResult:
    deleted = activity_logger.clear_all()
    return ClearResult(message="All activities cleared successfully", deleted_count=deleted)
