from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .models import ActivityEntity, ActivityRecord, ActivityStatsEntity, TodoEntity
from .settings import Settings, get_settings


@dataclass(frozen=True)
class ActivityQuery:
    """
    Query parameters for listing activities.
    """
    limit: int = 50
    offset: int = 0
    todo_id: Optional[int] = None


# PUBLIC_INTERFACE
class TodoRepository(ABC):
    """Abstract repository contract for todo storage backends."""

    @abstractmethod
    def create(self, title: str, description: str) -> TodoEntity:
        """Create and return a new TodoEntity."""

    @abstractmethod
    def get(self, todo_id: int) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def update(self, todo_id: int, changes: Mapping[str, Any]) -> Optional[TodoEntity]:
        """
        Apply the given field changes and refresh updated_at. Only keys present in
        `changes` are written. Return the updated entity or None if not found.
        """

    @abstractmethod
    def delete(self, todo_id: int) -> bool:
        """Delete a TodoEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list(self) -> List[TodoEntity]:
        """Return every todo, most recently created first."""


# PUBLIC_INTERFACE
class ActivityRepository(ABC):
    """Abstract repository contract for the append-only activity log."""

    @abstractmethod
    def append(self, record: ActivityRecord) -> int:
        """Store a new activity, assigning id and created_at. Return the new id."""

    @abstractmethod
    def get(self, activity_id: int) -> Optional[ActivityEntity]:
        """Return one activity joined with its todo title, or None."""

    @abstractmethod
    def list(self, query: Optional[ActivityQuery] = None) -> Tuple[List[ActivityEntity], int]:
        """
        Return a slice of activities and the total count matching the filter.
        - Ordered by created_at descending, newest first
        - Optional todo_id filter, applied to both slice and total
        """

    @abstractmethod
    def list_by_todo(self, todo_id: int) -> List[ActivityEntity]:
        """Return all activities for one todo, newest first."""

    @abstractmethod
    def delete(self, activity_id: int) -> bool:
        """Delete one activity. Return True if deleted, False if not found."""

    @abstractmethod
    def clear(self) -> int:
        """Delete every activity and return how many rows were removed."""

    @abstractmethod
    def stats(self, today: date) -> ActivityStatsEntity:
        """
        Aggregate counts over the log:
        - total rows
        - rows created on `today`
        - rows per action
        - rows per calendar day for the 7 most recent days with activity
        """


# PUBLIC_INTERFACE
@dataclass
class Store:
    """
    Handle to the persistent store: the two repositories plus the callable that
    releases their resources.
    """
    backend: str
    todos: TodoRepository
    activities: ActivityRepository
    _closer: Callable[[], None] = field(default=lambda: None, repr=False)

    def close(self) -> None:
        self._closer()


class _MemoryTables:
    """Both in-memory tables behind one lock so activity reads can join todo titles."""

    def __init__(self) -> None:
        self.lock = RLock()
        self.todos: Dict[int, TodoEntity] = {}
        self.activities: Dict[int, Dict[str, Any]] = {}
        self._next_ids = {"todos": 1, "activities": 1}

    def allocate_id(self, table: str) -> int:
        with self.lock:
            i = self._next_ids[table]
            self._next_ids[table] += 1
            return i


class InMemoryTodoRepository(TodoRepository):
    """
    Thread-safe in-memory todo repository suitable for testing and default runtime.
    """

    def __init__(self, tables: Optional[_MemoryTables] = None) -> None:
        self._tables = tables or _MemoryTables()

    def _now(self) -> datetime:
        return datetime.now()

    def create(self, title: str, description: str) -> TodoEntity:
        now = self._now()
        entity: TodoEntity = {
            "id": self._tables.allocate_id("todos"),
            "title": title,
            "description": description,
            "completed": False,
            "created_at": now,
            "updated_at": now,
        }
        with self._tables.lock:
            self._tables.todos[entity["id"]] = entity
        return entity.copy()  # type: ignore[return-value]

    def get(self, todo_id: int) -> Optional[TodoEntity]:
        with self._tables.lock:
            item = self._tables.todos.get(todo_id)
            return None if item is None else item.copy()  # type: ignore[return-value]

    def update(self, todo_id: int, changes: Mapping[str, Any]) -> Optional[TodoEntity]:
        with self._tables.lock:
            existing = self._tables.todos.get(todo_id)
            if existing is None:
                return None

            updated = existing.copy()
            for name in ("title", "description", "completed"):
                if name in changes:
                    updated[name] = changes[name]  # type: ignore[literal-required]
            updated["updated_at"] = self._now()

            self._tables.todos[todo_id] = updated  # type: ignore[assignment]
            return updated.copy()  # type: ignore[return-value]

    def delete(self, todo_id: int) -> bool:
        with self._tables.lock:
            return self._tables.todos.pop(todo_id, None) is not None

    def list(self) -> List[TodoEntity]:
        with self._tables.lock:
            items = sorted(
                self._tables.todos.values(),
                key=lambda t: (t["created_at"], t["id"]),
                reverse=True,
            )
            return [t.copy() for t in items]  # type: ignore[misc]


class InMemoryActivityRepository(ActivityRepository):
    """
    Thread-safe in-memory activity log sharing its tables with an
    InMemoryTodoRepository.
    """

    def __init__(self, tables: Optional[_MemoryTables] = None) -> None:
        self._tables = tables or _MemoryTables()

    def _now(self) -> datetime:
        return datetime.now()

    def _joined(self, row: Dict[str, Any]) -> ActivityEntity:
        todo = self._tables.todos.get(row["todo_id"]) if row["todo_id"] is not None else None
        return {**row, "todo_title": todo["title"] if todo else None}  # type: ignore[return-value]

    def _newest_first(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return sorted(rows, key=lambda a: (a["created_at"], a["id"]), reverse=True)

    def append(self, record: ActivityRecord) -> int:
        row = {
            "id": self._tables.allocate_id("activities"),
            "todo_id": record.get("todo_id"),
            "action": record["action"],
            "description": record.get("description"),
            "old_value": record.get("old_value"),
            "new_value": record.get("new_value"),
            "user_ip": record.get("user_ip"),
            "user_agent": record.get("user_agent"),
            "created_at": self._now(),
        }
        with self._tables.lock:
            self._tables.activities[row["id"]] = row
        return row["id"]

    def get(self, activity_id: int) -> Optional[ActivityEntity]:
        with self._tables.lock:
            row = self._tables.activities.get(activity_id)
            return None if row is None else self._joined(row)

    def list(self, query: Optional[ActivityQuery] = None) -> Tuple[List[ActivityEntity], int]:
        q = query or ActivityQuery()
        with self._tables.lock:
            rows = list(self._tables.activities.values())
            if q.todo_id is not None:
                rows = [a for a in rows if a["todo_id"] == q.todo_id]
            total = len(rows)

            start = max(q.offset, 0)
            end = start + max(q.limit, 0)
            page = self._newest_first(rows)[start:end]
            return [self._joined(a) for a in page], total

    def list_by_todo(self, todo_id: int) -> List[ActivityEntity]:
        with self._tables.lock:
            rows = [a for a in self._tables.activities.values() if a["todo_id"] == todo_id]
            return [self._joined(a) for a in self._newest_first(rows)]

    def delete(self, activity_id: int) -> bool:
        with self._tables.lock:
            return self._tables.activities.pop(activity_id, None) is not None

    def clear(self) -> int:
        with self._tables.lock:
            count = len(self._tables.activities)
            self._tables.activities.clear()
            return count

    def stats(self, today: date) -> ActivityStatsEntity:
        with self._tables.lock:
            rows = list(self._tables.activities.values())

        by_action = Counter(a["action"] for a in rows)
        by_day = Counter(a["created_at"].date().isoformat() for a in rows)
        recent_days = sorted(by_day, reverse=True)[:7]
        return {
            "total": len(rows),
            "today": by_day.get(today.isoformat(), 0),
            "by_action": [{"action": k, "count": by_action[k]} for k in sorted(by_action)],
            "last_7_days": [{"date": d, "count": by_day[d]} for d in recent_days],
        }


# PUBLIC_INTERFACE
def create_store(settings: Optional[Settings] = None) -> Store:
    """
    Factory to return the configured store based on settings.
    - memory: in-memory todo and activity repositories sharing one set of tables
    - sqlite: SQLite repositories on settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteDatabase, SQLiteActivityRepository, SQLiteTodoRepository

        database = SQLiteDatabase(settings.sqlite_db_path)
        return Store(
            backend="sqlite",
            todos=SQLiteTodoRepository(database),
            activities=SQLiteActivityRepository(database),
            _closer=database.close,
        )

    tables = _MemoryTables()
    return Store(
        backend="memory",
        todos=InMemoryTodoRepository(tables),
        activities=InMemoryActivityRepository(tables),
    )
