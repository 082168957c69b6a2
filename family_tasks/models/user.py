"""User model for SQLModel."""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

CHANNEL_SMS = "sms"
CHANNEL_WHATSAPP = "whatsapp"
NOTIFICATION_CHANNELS = (CHANNEL_SMS, CHANNEL_WHATSAPP)


def normalize_phone_number(phone_number: Optional[str]) -> Optional[str]:
    """Store phone numbers in E.164 form with a leading +."""
    if phone_number is None:
        return None
    cleaned = "".join(ch for ch in phone_number.strip() if ch.isdigit() or ch == "+")
    if not cleaned:
        return None
    return cleaned if cleaned.startswith("+") else f"+{cleaned}"


class User(SQLModel, table=True):
    """Household member who can be assigned tasks and receive reminders."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100, min_length=1)
    color: str = Field(default="#4169E1", max_length=20)  # display color
    phone_number: Optional[str] = Field(default=None, max_length=20)  # E.164, always with leading +
    notification_preference: str = Field(default=CHANNEL_SMS, max_length=20)  # sms, whatsapp
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))  # naive UTC
