"""User profile: only what the analytics core needs to address the user."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from healthcoach.models.common import utcnow


class UserProfile(SQLModel, table=True):
    __tablename__ = "profiles"

    user_id: str = Field(primary_key=True)
    name: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
