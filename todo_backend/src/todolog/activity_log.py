from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .models import ActivityAction, ActivityEntity, ActivityRecord, ActivityStatsEntity
from .repositories import ActivityQuery, ActivityRepository
from .utils import pagination_envelope

logger = logging.getLogger(__name__)

_ACTIONS = frozenset(a.value for a in ActivityAction)


# PUBLIC_INTERFACE
class ActivityLogger:
    """
    Read and write access to the activity log.

    Store failures are never caught here: append, reads, deletes and stats all
    let StoreError reach the caller. Swallowing audit-write failures is the
    job of whoever appends on the side of another operation.
    """

    def __init__(
        self,
        repository: ActivityRepository,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._repo = repository
        self._today = today

    def append(self, record: ActivityRecord) -> int:
        """
        Persist a fully formed activity and return its id.

        Raises:
            ValidationError: action is not one of CREATE, UPDATE, DELETE.
        """
        if record.get("action") not in _ACTIONS:
            raise ValidationError(f"Unknown activity action: {record.get('action')!r}")
        activity_id = self._repo.append(record)
        logger.debug(
            "Appended activity %s (%s) for todo %s", activity_id, record["action"], record.get("todo_id")
        )
        return activity_id

    def list(
        self, todo_id: Optional[int] = None, page: int = 1, limit: int = 50
    ) -> Dict[str, Any]:
        """
        Return one page of activities, newest first, plus pagination metadata.

        Raises:
            ValidationError: page or limit is below 1.
        """
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be >= 1")

        query = ActivityQuery(limit=limit, offset=(page - 1) * limit, todo_id=todo_id)
        activities, total = self._repo.list(query)
        return {
            "activities": activities,
            "pagination": pagination_envelope(page=page, limit=limit, total=total),
        }

    def get_by_todo_id(self, todo_id: int) -> List[ActivityEntity]:
        return self._repo.list_by_todo(todo_id)

    def get(self, activity_id: int) -> ActivityEntity:
        activity = self._repo.get(activity_id)
        if activity is None:
            raise NotFoundError("Activity not found")
        return activity

    def delete(self, activity_id: int) -> None:
        if not self._repo.delete(activity_id):
            raise NotFoundError("Activity not found")
        logger.info("Deleted activity %s", activity_id)

    def clear_all(self) -> int:
        """Remove every activity. Irreversible; returns the number removed."""
        deleted = self._repo.clear()
        logger.warning("Cleared activity log (%d rows removed)", deleted)
        return deleted

    def stats(self) -> ActivityStatsEntity:
        """Totals, today's count, counts per action and per day for the last 7 active days."""
        return self._repo.stats(self._today())
