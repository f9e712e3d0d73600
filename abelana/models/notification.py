from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import SQLModel, Field


class NotificationType(str, Enum):
    NEW_FOLLOWER = "new_follower"


class Notification(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True)

    recipient_id: str = Field(foreign_key="user.id", index=True)
    actor_id: Optional[str] = Field(default=None, foreign_key="user.id")

    type: NotificationType
    message: str
    is_read: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
