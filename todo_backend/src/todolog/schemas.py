from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import ActivityAction


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    Title trimming and the non-empty check happen in the service layer.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item", max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields are compared and updated.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item", max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456",
                "updated_at": "2025-01-26T09:00:00.000001",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: str = Field(default="", description="Detailed description, may be empty")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class TodoList(BaseModel):
    items: List[TodoOut] = Field(..., description="All todos, newest first")
    total: int = Field(..., description="Number of todos")


# PUBLIC_INTERFACE
class ActivityOut(BaseModel):
    """
    Schema returned by the API for one activity log entry.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 7,
                "todo_id": 1,
                "action": "UPDATE",
                "description": "Status changed from pending to completed",
                "old_value": '{"id": 1, "title": "Buy milk", "completed": false}',
                "new_value": '{"id": 1, "title": "Buy milk", "completed": true}',
                "user_ip": "127.0.0.1",
                "user_agent": "curl/8.5.0",
                "created_at": "2025-01-26T09:00:00.000001",
                "todo_title": "Buy milk",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the activity")
    todo_id: Optional[int] = Field(default=None, description="Todo the activity refers to; may no longer exist")
    action: ActivityAction = Field(..., description="Kind of mutation")
    description: Optional[str] = Field(default=None, description="Human-readable summary of the change")
    old_value: Optional[str] = Field(default=None, description="JSON snapshot before the mutation")
    new_value: Optional[str] = Field(default=None, description="JSON snapshot after the mutation")
    user_ip: Optional[str] = Field(default=None, description="Client address, when known")
    user_agent: Optional[str] = Field(default=None, description="Client User-Agent, when known")
    created_at: datetime = Field(..., description="When the activity was recorded")
    todo_title: Optional[str] = Field(default=None, description="Current title of the todo; null when deleted")


class Pagination(BaseModel):
    page: int = Field(..., description="Requested 1-indexed page")
    limit: int = Field(..., description="Page size")
    total: int = Field(..., description="Number of activities matching the filter")
    pages: int = Field(..., description="Number of pages, ceil(total / limit)")


class ActivityPage(BaseModel):
    """
    Envelope for paginated activity listings.
    """
    activities: List[ActivityOut]
    pagination: Pagination


class ActionCount(BaseModel):
    action: str
    count: int


class DayCount(BaseModel):
    date: str = Field(..., description="Calendar day, YYYY-MM-DD")
    count: int


# PUBLIC_INTERFACE
class ActivityStats(BaseModel):
    """
    Aggregate counts over the activity log.
    """

    total: int = Field(..., description="Number of activities")
    today: int = Field(..., description="Activities recorded on the current local calendar day")
    by_action: List[ActionCount] = Field(..., serialization_alias="byAction")
    last_7_days: List[DayCount] = Field(..., serialization_alias="last7Days")


class ClearResult(BaseModel):
    message: str
    deleted_count: int = Field(..., serialization_alias="deletedCount")


class Message(BaseModel):
    message: str
