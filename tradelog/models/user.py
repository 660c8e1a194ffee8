"""User model for authentication."""

from datetime import datetime
from sqlmodel import SQLModel, Field

from tradelog.utils.dates import utcnow


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    hashed_pin: str
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
