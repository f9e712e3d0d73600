from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class UserBase(SQLModel):
    """Profile fields shared by the table model and the API schemas"""
    display_name: str = Field(default="", max_length=200)
    email: Optional[str] = Field(default=None, index=True, unique=True, max_length=320)
    photo_url: Optional[str] = Field(default=None)


class User(UserBase, table=True):
    """
    Root of everything a person owns.

    The id is the stable identifier handed out by the identity provider, so it
    is supplied by the caller rather than generated here. Follow edges and
    pending follow intents live in their own tables (see models.follow).
    """
    id: str = Field(primary_key=True, max_length=128)
    is_moderator: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
