"""
Todo mutations and the activity entries they produce.

Every successful create, update or delete hands an activity record to the
configured dispatcher. The default dispatcher runs the append inline; the
HTTP layer passes `BackgroundTasks.add_task` so the append runs after the
response has been sent. Either way a failed append is logged and dropped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from .errors import NoChangeError, NotFoundError, ValidationError
from .models import ActivityAction, ActivityRecord, TodoEntity
from .repositories import TodoRepository
from .utils import serialize_snapshot

logger = logging.getLogger(__name__)

Dispatcher = Callable[..., Any]


class ActivityAppender(Protocol):
    """The only capability the todo service needs from the activity log."""

    def append(self, record: ActivityRecord) -> int:
        ...


def _run_inline(func: Callable[..., Any], *args: Any) -> None:
    func(*args)


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class RequestContext:
    """Best-effort provenance of the request that triggered a mutation."""
    user_ip: Optional[str] = None
    user_agent: Optional[str] = None


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TodoDiff:
    """
    Field-level differences between a stored todo and a proposed update.

    `changes` holds only fields whose value actually differs, already
    normalized; `lines` holds one human-readable sentence per changed field.
    """
    changes: Dict[str, Any] = field(default_factory=dict)
    lines: List[str] = field(default_factory=list)

    @property
    def description(self) -> str:
        return ", ".join(self.lines)

    def __bool__(self) -> bool:
        return bool(self.changes)


def _status(completed: bool) -> str:
    return "completed" if completed else "pending"


# PUBLIC_INTERFACE
def compute_diff(current: Mapping[str, Any], supplied: Mapping[str, Any]) -> TodoDiff:
    """
    Compare the supplied fields of a partial update against the stored todo.

    - title: trimmed; empty or null is rejected with ValidationError
    - description: trimmed; null on either side counts as ""
    - completed: compared as bool; null counts as not supplied
    Keys other than these three are ignored.
    """
    changes: Dict[str, Any] = {}
    lines: List[str] = []

    if "title" in supplied:
        title = (supplied["title"] or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty")
        if title != current["title"]:
            changes["title"] = title
            lines.append(f'Title changed from "{current["title"]}" to "{title}"')

    if "description" in supplied:
        old_description = current.get("description") or ""
        description = (supplied["description"] or "").strip()
        if description != old_description:
            changes["description"] = description
            lines.append(f'Description changed from "{old_description}" to "{description}"')

    if supplied.get("completed") is not None:
        old_completed = bool(current["completed"])
        completed = bool(supplied["completed"])
        if completed != old_completed:
            changes["completed"] = completed
            lines.append(f"Status changed from {_status(old_completed)} to {_status(completed)}")

    return TodoDiff(changes=changes, lines=lines)


def _snapshot(todo: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": todo["id"],
        "title": todo["title"],
        "description": todo.get("description") or "",
        "completed": bool(todo["completed"]),
        "created_at": todo.get("created_at"),
        "updated_at": todo.get("updated_at"),
    }


# PUBLIC_INTERFACE
class TodoService:
    """
    Owns the todo lifecycle and reports every successful mutation to the
    activity log.

    Args:
        todos: Repository the todos live in.
        activities: Append-only sink for activity records.
        dispatch: Called as ``dispatch(func, *args)`` to schedule an append.
            Defaults to running it immediately.
    """

    def __init__(
        self,
        todos: TodoRepository,
        activities: ActivityAppender,
        dispatch: Optional[Dispatcher] = None,
    ) -> None:
        self._todos = todos
        self._activities = activities
        self._dispatch = dispatch or _run_inline

    def get(self, todo_id: int) -> TodoEntity:
        todo = self._todos.get(todo_id)
        if todo is None:
            raise NotFoundError("Todo not found")
        return todo

    def list(self) -> List[TodoEntity]:
        return self._todos.list()

    def create(
        self,
        title: Optional[str],
        description: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> TodoEntity:
        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError("Title is required")

        created = self._todos.create(clean_title, (description or "").strip())
        logger.info("Created todo %s", created["id"])
        self._record(
            created["id"],
            ActivityAction.CREATE,
            f'Todo "{created["title"]}" was created',
            old=None,
            new=_snapshot(created),
            context=context,
        )
        return created

    def update(
        self,
        todo_id: int,
        fields: Mapping[str, Any],
        context: Optional[RequestContext] = None,
    ) -> TodoEntity:
        """
        Apply a partial update. `fields` holds only the keys the caller supplied.

        Raises:
            NotFoundError: no todo with this id.
            ValidationError: a supplied title is empty after trimming.
            NoChangeError: every supplied field equals the stored value.
        """
        current = self.get(todo_id)
        diff = compute_diff(current, fields)
        if not diff:
            raise NoChangeError("No changes detected")

        updated = self._todos.update(todo_id, diff.changes)
        if updated is None:
            raise NotFoundError("Todo not found")
        logger.info("Updated todo %s (%s)", todo_id, ", ".join(sorted(diff.changes)))

        old = _snapshot(current)
        self._record(
            todo_id,
            ActivityAction.UPDATE,
            diff.description,
            old=old,
            new={**old, **diff.changes},
            context=context,
        )
        return updated

    def delete(self, todo_id: int, context: Optional[RequestContext] = None) -> None:
        current = self.get(todo_id)
        if not self._todos.delete(todo_id):
            raise NotFoundError("Todo not found")
        logger.info("Deleted todo %s", todo_id)
        self._record(
            todo_id,
            ActivityAction.DELETE,
            f'Todo "{current["title"]}" was deleted',
            old=_snapshot(current),
            new=None,
            context=context,
        )

    def _record(
        self,
        todo_id: int,
        action: ActivityAction,
        description: str,
        old: Optional[Mapping[str, Any]],
        new: Optional[Mapping[str, Any]],
        context: Optional[RequestContext],
    ) -> None:
        ctx = context or RequestContext()
        record: ActivityRecord = {
            "todo_id": todo_id,
            "action": action.value,
            "description": description,
            "old_value": serialize_snapshot(old),
            "new_value": serialize_snapshot(new),
            "user_ip": ctx.user_ip,
            "user_agent": ctx.user_agent,
        }
        self._dispatch(self._append_quietly, record)

    def _append_quietly(self, record: ActivityRecord) -> None:
        # Audit writes must never fail the todo operation that caused them.
        try:
            self._activities.append(record)
        except Exception:
            logger.exception(
                "Failed to log activity: %s for todo %s", record["action"], record["todo_id"]
            )
