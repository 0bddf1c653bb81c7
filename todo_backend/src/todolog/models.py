from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, TypedDict


# PUBLIC_INTERFACE
class ActivityAction(str, Enum):
    """Kind of todo mutation an activity records."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo item for non-ORM storage
    backends.

    Fields:
    - id: Unique integer identifier
    - title: Short title (trimmed, never empty)
    - description: Detailed description, may be empty
    - completed: Boolean completion flag
    - created_at: local creation timestamp (datetime)
    - updated_at: local last update timestamp (datetime)
    """

    id: int
    title: str
    description: str
    completed: bool
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class ActivityRecord(TypedDict):
    """
    A fully formed activity ready to be appended to the log. The store assigns
    `id` and `created_at`.

    `old_value` / `new_value` are JSON snapshots of the todo, or None.
    """

    todo_id: Optional[int]
    action: str
    description: str
    old_value: Optional[str]
    new_value: Optional[str]
    user_ip: Optional[str]
    user_agent: Optional[str]


# PUBLIC_INTERFACE
class ActivityEntity(ActivityRecord):
    """
    A stored activity row. `todo_title` is the current title of the referenced
    todo, or None when the todo no longer exists.
    """

    id: int
    created_at: datetime
    todo_title: Optional[str]


class ActionCount(TypedDict):
    action: str
    count: int


class DayCount(TypedDict):
    date: str
    count: int


class ActivityStatsEntity(TypedDict):
    total: int
    today: int
    by_action: List[ActionCount]
    last_7_days: List[DayCount]
