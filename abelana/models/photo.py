from datetime import datetime
from typing import Optional

from sqlalchemy import Index
from sqlmodel import SQLModel, Field


class Photo(SQLModel, table=True):
    """
    A photo owned by a user. The id is "<ownerUserID>.<suffix>" and is minted
    by the upload pipeline; ``date`` is the creation time in Unix seconds.
    """
    __table_args__ = (
        Index("ix_photo_user_id_date", "user_id", "date"),
    )

    id: str = Field(primary_key=True, max_length=300)
    user_id: str = Field(foreign_key="user.id", index=True)
    date: int = Field(index=True)
    flagged: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PhotoLike(SQLModel, table=True):
    # Existence of the row is the like
    photo_id: str = Field(foreign_key="photo.id", primary_key=True)
    user_id: str = Field(foreign_key="user.id", primary_key=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PhotoComment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    photo_id: str = Field(foreign_key="photo.id", index=True)
    person_id: str = Field(foreign_key="user.id", index=True)
    text: str = Field(..., max_length=1000)
    time: int = Field(index=True)


class PhotoFlag(SQLModel, table=True):
    """One row per user that flagged a photo for moderation"""
    photo_id: str = Field(foreign_key="photo.id", primary_key=True)
    user_id: str = Field(foreign_key="user.id", primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PhotoReview(SQLModel, table=True):
    """A moderator's verdict on a flagged photo"""
    photo_id: str = Field(foreign_key="photo.id", primary_key=True)
    moderator_id: str = Field(foreign_key="user.id", primary_key=True)
    approved: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
