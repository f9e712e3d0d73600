from typing import List, Optional

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from abelana.models.follow import UserFollow
from abelana.models.user import User


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


async def get_user(session: AsyncSession, user_id: str) -> Optional[User]:
    result = await session.exec(select(User).where(User.id == user_id))
    return result.first()


async def get_user_ids_by_email(session: AsyncSession, email: str) -> List[str]:
    """Keys-only lookup of the accounts registered under ``email``"""
    result = await session.exec(
        select(User.id).where(User.email == normalize_email(email))
    )
    return list(result.all())


async def get_following(session: AsyncSession, user_id: str) -> List[User]:
    """Get all users that a given user is following"""
    result = await session.exec(
        select(User)
        .join(UserFollow, User.id == UserFollow.followed_id)
        .where(UserFollow.follower_id == user_id)
        .order_by(UserFollow.created_at, User.id)
    )
    return list(result.all())


async def count_following(session: AsyncSession, user_id: str) -> int:
    result = await session.exec(
        select(func.count()).select_from(UserFollow).where(UserFollow.follower_id == user_id)
    )
    return result.one()


async def count_followers(session: AsyncSession, user_id: str) -> int:
    result = await session.exec(
        select(func.count()).select_from(UserFollow).where(UserFollow.followed_id == user_id)
    )
    return result.one()
