"""User profile model created on first contact."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    user_id: str
    display_name: str = "User"
    topics: list[str] = Field(default_factory=list)
    timezone: str = "CET"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
