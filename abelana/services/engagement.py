"""
Likes, comments, flags and moderator review for photos.

Likes are rows keyed by (photo, user), so a like exists at most once and the
like count is simply the number of rows. Flagging hides a photo from every
timeline until REQUIRED_APPROVALS distinct moderators approve it.
"""

import logging
import time
from typing import List, Optional

from sqlalchemy import delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from abelana.core.config import settings
from abelana.core.exceptions import NotFound, PermissionDenied
from abelana.crud import photo as crud_photo
from abelana.crud import user as crud_user
from abelana.db.database import run_in_transaction
from abelana.models.photo import Photo, PhotoComment, PhotoFlag, PhotoLike, PhotoReview
from abelana.schemas.photo import ReviewResult

logger = logging.getLogger(__name__)


class EngagementService:

    def __init__(
        self,
        session: AsyncSession,
        *,
        required_approvals: Optional[int] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.required_approvals = required_approvals or settings.REQUIRED_APPROVALS
        self.log = log or logger

    async def _require_photo(self, session: AsyncSession, photo_id: str, operation: str) -> Photo:
        photo = await crud_photo.get_photo(session, photo_id)
        if photo is None:
            raise NotFound(f"{operation}: photo {photo_id!r} not found")
        return photo

    async def like(self, user_id: str, photo_id: str) -> bool:
        """Record that ``user_id`` likes the photo. Liking twice counts once."""
        _, photo_id = crud_photo.split_photo_id(photo_id)

        async def _like(session: AsyncSession) -> bool:
            await self._require_photo(session, photo_id, "like")
            existing = await session.exec(
                select(PhotoLike).where(
                    PhotoLike.photo_id == photo_id,
                    PhotoLike.user_id == user_id,
                )
            )
            if existing.first() is not None:
                return False
            session.add(PhotoLike(photo_id=photo_id, user_id=user_id))
            return True

        return await run_in_transaction(self.session, _like, operation=f"like {user_id} {photo_id}")

    async def unlike(self, user_id: str, photo_id: str) -> bool:
        """Remove a like. Removing a like that isn't there is a no-op."""
        _, photo_id = crud_photo.split_photo_id(photo_id)

        async def _unlike(session: AsyncSession) -> bool:
            result = await session.execute(
                delete(PhotoLike).where(
                    PhotoLike.photo_id == photo_id,
                    PhotoLike.user_id == user_id,
                )
            )
            return result.rowcount > 0

        return await run_in_transaction(self.session, _unlike, operation=f"unlike {user_id} {photo_id}")

    async def like_count(self, photo_id: str) -> int:
        _, photo_id = crud_photo.split_photo_id(photo_id)
        return await crud_photo.count_likes(self.session, photo_id)

    async def flag(self, user_id: str, photo_id: str) -> bool:
        """
        Flag a photo for moderation. The flag is stored per user and the photo
        is hidden until it is approved. Returns True on a user's first flag.
        """
        _, photo_id = crud_photo.split_photo_id(photo_id)

        async def _flag(session: AsyncSession) -> bool:
            photo = await self._require_photo(session, photo_id, "flag")
            existing = await session.exec(
                select(PhotoFlag).where(
                    PhotoFlag.photo_id == photo_id,
                    PhotoFlag.user_id == user_id,
                )
            )
            if existing.first() is not None:
                return False
            session.add(PhotoFlag(photo_id=photo_id, user_id=user_id))
            photo.flagged = True
            session.add(photo)
            return True

        created = await run_in_transaction(self.session, _flag, operation=f"flag {user_id} {photo_id}")
        if created:
            self.log.info(f"flag: {photo_id} flagged by {user_id}, hidden pending review")
        return created

    async def review(self, moderator_id: str, photo_id: str, approved: bool = True) -> ReviewResult:
        """Record a moderator's verdict and report whether the photo is visible"""
        _, photo_id = crud_photo.split_photo_id(photo_id)

        async def _review(session: AsyncSession) -> ReviewResult:
            moderator = await crud_user.get_user(session, moderator_id)
            if moderator is None or not moderator.is_moderator:
                raise PermissionDenied(f"review: {moderator_id!r} is not a moderator")
            photo = await self._require_photo(session, photo_id, "review")

            result = await session.exec(
                select(PhotoReview).where(
                    PhotoReview.photo_id == photo_id,
                    PhotoReview.moderator_id == moderator_id,
                )
            )
            verdict = result.first()
            if verdict is None:
                verdict = PhotoReview(photo_id=photo_id, moderator_id=moderator_id)
            verdict.approved = approved
            session.add(verdict)
            await session.flush()

            approvals = await crud_photo.count_approvals(session, photo_id)
            return ReviewResult(
                photoid=photo_id,
                approvals=approvals,
                visible=not photo.flagged or approvals >= self.required_approvals,
            )

        return await run_in_transaction(
            self.session, _review, operation=f"review {moderator_id} {photo_id}"
        )

    async def add_comment(self, user_id: str, photo_id: str, text: str) -> PhotoComment:
        _, photo_id = crud_photo.split_photo_id(photo_id)

        async def _comment(session: AsyncSession) -> PhotoComment:
            await self._require_photo(session, photo_id, "add_comment")
            comment = PhotoComment(
                photo_id=photo_id,
                person_id=user_id,
                text=text,
                time=int(time.time()),
            )
            session.add(comment)
            return comment

        return await run_in_transaction(
            self.session, _comment, operation=f"add_comment {user_id} {photo_id}"
        )

    async def get_comments(self, photo_id: str) -> List[PhotoComment]:
        _, photo_id = crud_photo.split_photo_id(photo_id)
        result = await self.session.exec(
            select(PhotoComment)
            .where(PhotoComment.photo_id == photo_id)
            .order_by(PhotoComment.time, PhotoComment.id)
        )
        return list(result.all())

    async def add_photo(self, photo_id: str, date: Optional[int] = None) -> Photo:
        """Register an uploaded photo with its owner. Re-registering is a no-op."""
        owner_id, photo_id = crud_photo.split_photo_id(photo_id)

        async def _add(session: AsyncSession) -> Photo:
            photo = await crud_photo.get_photo(session, photo_id)
            if photo is not None:
                return photo
            if await crud_user.get_user(session, owner_id) is None:
                raise NotFound(f"add_photo: owner {owner_id!r} not found")
            photo = Photo(
                id=photo_id,
                user_id=owner_id,
                date=date if date is not None else int(time.time()),
            )
            session.add(photo)
            return photo

        return await run_in_transaction(self.session, _add, operation=f"add_photo {photo_id}")
