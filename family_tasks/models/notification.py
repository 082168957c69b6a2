"""Notification model for SQLModel."""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlmodel import Field, SQLModel

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_FAILED = "failed"
DELIVERY_STATUSES = (STATUS_PENDING, STATUS_SENT, STATUS_DELIVERED, STATUS_FAILED)


class Notification(SQLModel, table=True):
    """One reminder delivery and its attempt history (the delivery ledger)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    user_id: int = Field(
        sa_column=Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    message: str
    channel: Optional[str] = Field(default=None, max_length=20)  # sms, whatsapp
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
    read: bool = Field(default=False)

    delivery_status: str = Field(default=STATUS_PENDING, max_length=20)  # pending, sent, delivered, failed
    message_sid: Optional[str] = Field(default=None, max_length=64, index=True)  # provider message id
    delivery_error: Optional[str] = Field(default=None)
    delivery_attempts: int = Field(default=0)
    last_attempt_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
