"""Task schemas for the household task API."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskCreate(BaseModel):
    """Schema for creating a task, optionally as a recurring definition."""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    assigned_to: Optional[int] = None
    priority: Optional[str] = Field(default="medium", pattern=r"^(high|medium|low)$")
    due_date: Optional[str] = Field(None)  # ISO date string, local time unless it carries an offset
    reminder_time: Optional[str] = Field(None)  # ISO date string
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = Field(None, pattern=r"^(daily|weekly|monthly)$")
    recurrence_end_date: Optional[str] = Field(None)  # ISO date string


class TaskResponse(BaseModel):
    """Schema for task API responses. Timestamps are UTC."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    assigned_to: Optional[int] = None
    completed: bool
    priority: str = "medium"
    due_date: Optional[datetime] = None
    reminder_time: Optional[datetime] = None
    reminder_processed: bool = False
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None
    recurrence_end_date: Optional[datetime] = None
    parent_task_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class TaskCreated(BaseModel):
    """A created task plus the occurrences expanded from it."""
    task: TaskResponse
    occurrences_created: int = 0


class TaskList(BaseModel):
    tasks: List[TaskResponse]
    count: int


class TaskToggleComplete(BaseModel):
    """Schema for setting task completion."""
    completed: bool = True
