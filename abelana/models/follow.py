from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class UserFollow(SQLModel, table=True):
    """
    Directed follow edge. One row answers both sides of the relationship:
    followed_id is in the follower's "I follow" set and follower_id is in the
    followed user's "follows me" set.
    """

    follower_id: str = Field(
        foreign_key="user.id",
        primary_key=True,
        index=True  # For faster "I follow" queries
    )
    followed_id: str = Field(
        foreign_key="user.id",
        primary_key=True,
        index=True  # For faster "follows me" queries
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)


class FollowIntent(SQLModel, table=True):
    """A request to follow an e-mail address that has no account yet"""

    user_id: str = Field(foreign_key="user.id", primary_key=True)
    email: str = Field(primary_key=True, index=True, max_length=320)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    # Kept as an audit trail once the follow has been scheduled
    resolved_at: Optional[datetime] = Field(default=None, index=True)
