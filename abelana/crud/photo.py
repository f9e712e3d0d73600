from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from abelana.core.exceptions import MalformedInput
from abelana.models.photo import Photo, PhotoLike, PhotoReview


def split_photo_id(photo_id: Optional[str]) -> Tuple[str, str]:
    """
    Split "<ownerUserID>.<suffix>" into (owner id, photo id).
    Anything other than exactly two non-empty segments is rejected.
    """
    parts = (photo_id or "").split(".")
    if len(parts) != 2 or not all(parts):
        raise MalformedInput(f"malformed photo id {photo_id!r}")
    return parts[0], photo_id


async def get_photo(session: AsyncSession, photo_id: str) -> Optional[Photo]:
    result = await session.exec(select(Photo).where(Photo.id == photo_id))
    return result.first()


def approvals_count():
    """Correlated count of approving reviews for the outer Photo row"""
    return (
        select(func.count())
        .select_from(PhotoReview)
        .where(PhotoReview.photo_id == Photo.id, PhotoReview.approved == True)  # noqa: E712
        .correlate(Photo)
        .scalar_subquery()
    )


def visible_clause(required_approvals: int):
    """Flagged photos stay hidden until enough moderators approve them"""
    return or_(Photo.flagged == False, approvals_count() >= required_approvals)  # noqa: E712


async def count_approvals(session: AsyncSession, photo_id: str) -> int:
    result = await session.exec(
        select(func.count())
        .select_from(PhotoReview)
        .where(PhotoReview.photo_id == photo_id, PhotoReview.approved == True)  # noqa: E712
    )
    return result.one()


async def count_likes(session: AsyncSession, photo_id: str) -> int:
    result = await session.exec(
        select(func.count()).select_from(PhotoLike).where(PhotoLike.photo_id == photo_id)
    )
    return result.one()


async def count_likes_for(session: AsyncSession, photo_ids: Iterable[str]) -> Dict[str, int]:
    ids = list(photo_ids)
    if not ids:
        return {}
    result = await session.exec(
        select(PhotoLike.photo_id, func.count())
        .where(PhotoLike.photo_id.in_(ids))
        .group_by(PhotoLike.photo_id)
    )
    counts = {photo_id: 0 for photo_id in ids}
    counts.update({photo_id: count for photo_id, count in result.all()})
    return counts


async def liked_by(session: AsyncSession, user_id: str, photo_ids: Iterable[str]) -> Set[str]:
    ids = list(photo_ids)
    if not ids:
        return set()
    result = await session.exec(
        select(PhotoLike.photo_id).where(
            PhotoLike.user_id == user_id,
            PhotoLike.photo_id.in_(ids),
        )
    )
    return set(result.all())


async def get_photo_ids_for_user(session: AsyncSession, user_id: str) -> List[str]:
    result = await session.exec(select(Photo.id).where(Photo.user_id == user_id))
    return list(result.all())
