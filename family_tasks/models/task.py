"""Task model for SQLModel."""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlmodel import Field, SQLModel

TASK_PRIORITIES = ("low", "medium", "high")
RECURRENCE_PATTERNS = ("daily", "weekly", "monthly")


class Task(SQLModel, table=True):
    """Household task, a recurring definition, or one generated occurrence of it."""

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default=None, max_length=1000)
    assigned_to: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), index=True, nullable=True),
    )
    completed: bool = Field(default=False)
    priority: str = Field(default="medium", max_length=20)  # low, medium, high

    # All timestamps are naive UTC
    due_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
    reminder_time: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=False), index=True, nullable=True),
    )
    reminder_processed: bool = Field(default=False)  # only ever flips false -> true

    # Recurring series
    recurrence_pattern: Optional[str] = Field(default=None, max_length=20)  # daily, weekly, monthly
    recurrence_end_date: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
    parent_task_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="SET NULL"), index=True, nullable=True),
    )
    is_recurring: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))

    @property
    def is_occurrence(self) -> bool:
        return self.parent_task_id is not None
