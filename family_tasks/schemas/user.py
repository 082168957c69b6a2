"""User schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    """Household member sign-up body."""
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default="#4169E1", max_length=20)
    phone_number: Optional[str] = Field(None, max_length=20)
    notification_preference: str = Field(default="sms", pattern=r"^(sms|whatsapp)$")


class UserUpdate(BaseModel):
    """Partial profile update; only the fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = Field(None, max_length=20)
    phone_number: Optional[str] = Field(None, max_length=20)  # null clears the number
    notification_preference: Optional[str] = Field(None, pattern=r"^(sms|whatsapp)$")


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: str
    phone_number: Optional[str] = None
    notification_preference: str
    created_at: datetime
