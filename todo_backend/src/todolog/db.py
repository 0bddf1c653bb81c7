from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from threading import RLock
from typing import Any, Generator, List, Mapping, Optional, Tuple

from .errors import StoreError
from .models import ActivityEntity, ActivityRecord, ActivityStatsEntity, TodoEntity
from .repositories import ActivityQuery, ActivityRepository, TodoRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _TodoCols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    completed: str = "completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


@dataclass(frozen=True)
class _ActivityCols:
    table: str = "activities"
    id: str = "id"
    todo_id: str = "todo_id"
    action: str = "action"
    description: str = "description"
    old_value: str = "old_value"
    new_value: str = "new_value"
    user_ip: str = "user_ip"
    user_agent: str = "user_agent"
    created_at: str = "created_at"


_T = _TodoCols()
_A = _ActivityCols()

# activities.todo_id carries no FOREIGN KEY: rows must outlive the todo they describe.
_ACTIVITY_SELECT = f"""
    SELECT a.*, t.{_T.title} AS todo_title
    FROM {_A.table} a
    LEFT JOIN {_T.table} t ON a.{_A.todo_id} = t.{_T.id}
"""
_NEWEST_FIRST = f"ORDER BY a.{_A.created_at} DESC, a.{_A.id} DESC"


def _timestamp() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


class SQLiteDatabase:
    """
    Owns one SQLite connection shared by the todo and activity repositories.
    Every sqlite3 error raised inside `connection()` surfaces as StoreError.
    """

    def __init__(self, db_path: str) -> None:
        if db_path != ":memory:":
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._lock = RLock()
        try:
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
                db_path, check_same_thread=False
            )
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {db_path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        with self._lock:
            if self._conn is None:
                raise StoreError("Database connection is closed")
            try:
                try:
                    yield self._conn
                    self._conn.commit()
                except BaseException:
                    self._conn.rollback()
                    raise
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Closed database %s", self._db_path)

    def _init_db(self) -> None:
        with self.connection() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.table} (
                    {_T.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_T.title} TEXT NOT NULL,
                    {_T.description} TEXT NOT NULL DEFAULT '',
                    {_T.completed} INTEGER NOT NULL DEFAULT 0,
                    {_T.created_at} TEXT NOT NULL,
                    {_T.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_A.table} (
                    {_A.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_A.todo_id} INTEGER NULL,
                    {_A.action} TEXT NOT NULL,
                    {_A.description} TEXT NULL,
                    {_A.old_value} TEXT NULL,
                    {_A.new_value} TEXT NULL,
                    {_A.user_ip} TEXT NULL,
                    {_A.user_agent} TEXT NULL,
                    {_A.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.table}_created_at ON {_T.table}({_T.created_at})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_A.table}_todo_id ON {_A.table}({_A.todo_id})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_A.table}_created_at ON {_A.table}({_A.created_at})"
            )


class SQLiteTodoRepository(TodoRepository):
    """
    Lightweight SQLite repository implementing the TodoRepository interface.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[_T.id]),
            "title": str(row[_T.title]),
            "description": row[_T.description] or "",
            "completed": bool(row[_T.completed]),
            "created_at": _parse_dt(row[_T.created_at]),  # type: ignore
            "updated_at": _parse_dt(row[_T.updated_at]),  # type: ignore
        }

    def _select(self, conn: sqlite3.Connection, todo_id: int) -> Optional[sqlite3.Row]:
        return conn.execute(f"SELECT * FROM {_T.table} WHERE {_T.id} = ?", (todo_id,)).fetchone()

    def create(self, title: str, description: str) -> TodoEntity:
        now = _timestamp()
        with self._db.connection() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_T.table} ({_T.title}, {_T.description}, {_T.completed},
                    {_T.created_at}, {_T.updated_at})
                VALUES (?, ?, 0, ?, ?)
                """,
                (title, description, now, now),
            )
            row = self._select(conn, cur.lastrowid)
            assert row is not None
            return self._row_to_entity(row)

    def get(self, todo_id: int) -> Optional[TodoEntity]:
        with self._db.connection() as conn:
            row = self._select(conn, todo_id)
            return self._row_to_entity(row) if row else None

    def update(self, todo_id: int, changes: Mapping[str, Any]) -> Optional[TodoEntity]:
        assignments: List[str] = []
        params: List[Any] = []
        for column in (_T.title, _T.description, _T.completed):
            if column in changes:
                assignments.append(f"{column} = ?")
                value = changes[column]
                params.append((1 if value else 0) if column == _T.completed else value)
        assignments.append(f"{_T.updated_at} = ?")
        params.extend([_timestamp(), todo_id])

        with self._db.connection() as conn:
            cur = conn.execute(
                f"UPDATE {_T.table} SET {', '.join(assignments)} WHERE {_T.id} = ?", params
            )
            if cur.rowcount == 0:
                return None
            row = self._select(conn, todo_id)
            assert row is not None
            return self._row_to_entity(row)

    def delete(self, todo_id: int) -> bool:
        with self._db.connection() as conn:
            cur = conn.execute(f"DELETE FROM {_T.table} WHERE {_T.id} = ?", (todo_id,))
            return cur.rowcount > 0

    def list(self) -> List[TodoEntity]:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_T.table} ORDER BY {_T.created_at} DESC, {_T.id} DESC"
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]


class SQLiteActivityRepository(ActivityRepository):
    """
    SQLite activity log. Reads LEFT JOIN todos so orphaned rows come back with
    todo_title = None.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def _row_to_entity(self, row: sqlite3.Row) -> ActivityEntity:
        return {
            "id": int(row[_A.id]),
            "todo_id": row[_A.todo_id],
            "action": str(row[_A.action]),
            "description": row[_A.description],
            "old_value": row[_A.old_value],
            "new_value": row[_A.new_value],
            "user_ip": row[_A.user_ip],
            "user_agent": row[_A.user_agent],
            "created_at": _parse_dt(row[_A.created_at]),  # type: ignore
            "todo_title": row["todo_title"],
        }

    def append(self, record: ActivityRecord) -> int:
        with self._db.connection() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_A.table} ({_A.todo_id}, {_A.action}, {_A.description},
                    {_A.old_value}, {_A.new_value}, {_A.user_ip}, {_A.user_agent}, {_A.created_at})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.get("todo_id"),
                    record["action"],
                    record.get("description"),
                    record.get("old_value"),
                    record.get("new_value"),
                    record.get("user_ip"),
                    record.get("user_agent"),
                    _timestamp(),
                ),
            )
            return int(cur.lastrowid)

    def get(self, activity_id: int) -> Optional[ActivityEntity]:
        with self._db.connection() as conn:
            row = conn.execute(
                f"{_ACTIVITY_SELECT} WHERE a.{_A.id} = ?", (activity_id,)
            ).fetchone()
            return self._row_to_entity(row) if row else None

    def list(self, query: Optional[ActivityQuery] = None) -> Tuple[List[ActivityEntity], int]:
        q = query or ActivityQuery()
        where_sql = ""
        params: list = []
        if q.todo_id is not None:
            where_sql = f"WHERE a.{_A.todo_id} = ?"
            params.append(q.todo_id)

        with self._db.connection() as conn:
            count_row = conn.execute(
                f"SELECT COUNT(*) AS cnt FROM {_A.table} a {where_sql}", params
            ).fetchone()
            total = int(count_row["cnt"]) if count_row else 0

            rows = conn.execute(
                f"{_ACTIVITY_SELECT} {where_sql} {_NEWEST_FIRST} LIMIT ? OFFSET ?",
                [*params, max(q.limit, 0), max(q.offset, 0)],
            ).fetchall()
            return [self._row_to_entity(r) for r in rows], total

    def list_by_todo(self, todo_id: int) -> List[ActivityEntity]:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"{_ACTIVITY_SELECT} WHERE a.{_A.todo_id} = ? {_NEWEST_FIRST}", (todo_id,)
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def delete(self, activity_id: int) -> bool:
        with self._db.connection() as conn:
            cur = conn.execute(f"DELETE FROM {_A.table} WHERE {_A.id} = ?", (activity_id,))
            return cur.rowcount > 0

    def clear(self) -> int:
        with self._db.connection() as conn:
            cur = conn.execute(f"DELETE FROM {_A.table}")
            return cur.rowcount

    def stats(self, today: date) -> ActivityStatsEntity:
        # created_at is ISO text, so its first 10 characters are the calendar day
        day = f"substr({_A.created_at}, 1, 10)"
        with self._db.connection() as conn:
            total = conn.execute(f"SELECT COUNT(*) AS cnt FROM {_A.table}").fetchone()["cnt"]
            today_count = conn.execute(
                f"SELECT COUNT(*) AS cnt FROM {_A.table} WHERE {day} = ?", (today.isoformat(),)
            ).fetchone()["cnt"]
            by_action = conn.execute(
                f"""
                SELECT {_A.action} AS action, COUNT(*) AS count FROM {_A.table}
                GROUP BY {_A.action} ORDER BY {_A.action}
                """
            ).fetchall()
            by_day = conn.execute(
                f"""
                SELECT {day} AS date, COUNT(*) AS count FROM {_A.table}
                GROUP BY {day} ORDER BY date DESC LIMIT 7
                """
            ).fetchall()

        return {
            "total": int(total),
            "today": int(today_count),
            "by_action": [{"action": r["action"], "count": int(r["count"])} for r in by_action],
            "last_7_days": [{"date": r["date"], "count": int(r["count"])} for r in by_day],
        }
