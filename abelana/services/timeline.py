"""
Read path: a user's own photos (profile) and the aggregated timeline of
everyone they follow. Both are newest first and paged by TIMELINE_BATCH_SIZE.
Bad cursors are logged and treated as "first page" instead of failing.
"""

import logging
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from abelana.core.config import settings
from abelana.core.exceptions import MalformedInput
from abelana.crud import photo as crud_photo
from abelana.crud import user as crud_user
from abelana.models.follow import UserFollow
from abelana.models.photo import Photo
from abelana.models.user import User
from abelana.schemas.envelope import TLEntry

logger = logging.getLogger(__name__)

_NO_CURSOR = ("", "0")


def parse_date_cursor(last_date: Optional[str]) -> Optional[int]:
    """Unix-seconds cursor; None means no cursor"""
    if last_date is None or last_date in _NO_CURSOR:
        return None
    try:
        return int(last_date)
    except (TypeError, ValueError):
        raise MalformedInput(f"bad date cursor {last_date!r}")


class TimelineReader:

    def __init__(
        self,
        session: AsyncSession,
        *,
        batch_size: Optional[int] = None,
        required_approvals: Optional[int] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.batch_size = batch_size or settings.TIMELINE_BATCH_SIZE
        self.required_approvals = required_approvals or settings.REQUIRED_APPROVALS
        self.log = log or logger

    async def profile_for_user(self, user_id: str, last_date: Optional[str] = None) -> List[TLEntry]:
        """
        The most recent photos of one user, strictly older than ``last_date``.
        Like counts are not computed here (reported as -1) to keep large
        profiles cheap.
        """
        try:
            cursor = parse_date_cursor(last_date)
        except MalformedInput as e:
            self.log.warning(f"profile_for_user {user_id}: {e.detail}, ignoring cursor")
            cursor = None

        query = select(Photo).where(
            Photo.user_id == user_id,
            crud_photo.visible_clause(self.required_approvals),
        )
        if cursor is not None:
            query = query.where(Photo.date < cursor)
        query = query.order_by(Photo.date.desc(), Photo.id.desc()).limit(self.batch_size)

        try:
            user = await crud_user.get_user(self.session, user_id)
            result = await self.session.exec(query)
            photos = list(result.all())
        except SQLAlchemyError as e:
            self.log.error(f"profile_for_user {user_id}: {e}")
            return []

        if user is None:
            self.log.error(f"profile_for_user: user {user_id!r} not found")
        name = user.display_name if user else ""

        entries = [
            TLEntry(
                created=photo.date,
                userid=user_id,
                name=name,
                photoid=photo.id,
                likes=-1,
                ilike=False,
            )
            for photo in photos
        ]
        self.log.debug(f"profile_for_user {user_id}: {len(entries)} entries")
        return entries

    async def _resolve_cursor(self, user_id: str, last_id: Optional[str]) -> Optional[Photo]:
        if last_id is None or last_id in _NO_CURSOR:
            return None
        try:
            _, last_id = crud_photo.split_photo_id(last_id)
        except MalformedInput as e:
            self.log.warning(f"get_timeline {user_id}: {e.detail}, starting from the top")
            return None
        photo = await crud_photo.get_photo(self.session, last_id)
        if photo is None:
            self.log.warning(f"get_timeline {user_id}: unknown cursor {last_id!r}, starting from the top")
        return photo

    async def get_timeline(self, user_id: str, last_id: Optional[str] = None) -> List[TLEntry]:
        """
        Photos from the user and everyone they follow, newest first. ``last_id``
        is the last photo id of the previous page; ordering is (date, id)
        descending so the cursor is stable when dates collide.
        """
        try:
            cursor = await self._resolve_cursor(user_id, last_id)
        except SQLAlchemyError as e:
            self.log.error(f"get_timeline {user_id}: {e}")
            return []

        followed = select(UserFollow.followed_id).where(UserFollow.follower_id == user_id)
        query = (
            select(Photo, User.display_name)
            .join(User, User.id == Photo.user_id)
            .where(
                or_(Photo.user_id == user_id, Photo.user_id.in_(followed)),
                crud_photo.visible_clause(self.required_approvals),
            )
        )
        if cursor is not None:
            query = query.where(
                or_(
                    Photo.date < cursor.date,
                    and_(Photo.date == cursor.date, Photo.id < cursor.id),
                )
            )
        query = query.order_by(Photo.date.desc(), Photo.id.desc()).limit(self.batch_size)

        try:
            result = await self.session.exec(query)
            rows = list(result.all())
            photo_ids = [photo.id for photo, _ in rows]
            likes = await crud_photo.count_likes_for(self.session, photo_ids)
            mine = await crud_photo.liked_by(self.session, user_id, photo_ids)
        except SQLAlchemyError as e:
            self.log.error(f"get_timeline {user_id}: {e}")
            return []

        return [
            TLEntry(
                created=photo.date,
                userid=photo.user_id,
                name=display_name or "",
                photoid=photo.id,
                likes=likes.get(photo.id, 0),
                ilike=photo.id in mine,
            )
            for photo, display_name in rows
        ]
