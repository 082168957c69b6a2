"""Notification and delivery schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    """One delivery-ledger row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    user_id: int
    message: str
    channel: Optional[str] = None
    created_at: datetime
    read: bool
    delivery_status: str
    message_sid: Optional[str] = None
    delivery_error: Optional[str] = None
    delivery_attempts: int
    last_attempt_at: Optional[datetime] = None


class TestNotificationResponse(BaseModel):
    """Outcome of a user-triggered test message."""
    success: bool
    message: str
    status: Optional[str] = None
    channel: Optional[str] = None
    fallback: bool = False


class WebhookAck(BaseModel):
    """Response to a provider status callback."""
    received: bool = True
    matched: bool = False
