"""
Social graph: follow edges, follow-by-email intents and the fan-out that
resolves those intents when the address finally signs up.

Follow edges are single rows keyed by (follower, followed), so the "I follow"
and "follows me" views of a relationship can never disagree. Follow intents
are rows keyed by (user, email); the email column is indexed because
reconciliation searches it across the whole population.
"""

import base64
import binascii
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from abelana.core.config import settings
from abelana.core.exceptions import AlreadyExists, MalformedInput, NotFound
from abelana.crud import photo as crud_photo
from abelana.crud import user as crud_user
from abelana.db.database import run_in_transaction
from abelana.models.follow import FollowIntent, UserFollow
from abelana.models.notification import Notification
from abelana.models.photo import Photo, PhotoComment, PhotoFlag, PhotoLike, PhotoReview
from abelana.models.user import User
from abelana.schemas.envelope import Stats
from abelana.tasks.runner import FIND_FOLLOWS, FOLLOW_BY_ID, I_NOW_FOLLOW, TaskRunner

logger = logging.getLogger(__name__)

FOLLOWING = "following"
PENDING = "pending"


def decode_email(segment: Optional[str]) -> str:
    """
    Decode an e-mail path segment. Clients send the address as unpadded
    URL-safe base64; a literal address is accepted as well.
    """
    if not segment:
        raise MalformedInput("empty e-mail segment")
    if "@" in segment:
        email = segment
    else:
        padded = segment + "=" * (-len(segment) % 4)
        try:
            email = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise MalformedInput(f"undecodable e-mail segment {segment!r}") from e
    email = crud_user.normalize_email(email)
    if not email or "@" not in email:
        raise MalformedInput(f"not an e-mail address: {segment!r}")
    return email


class GraphService:
    """Follow graph operations for one request or task"""

    def __init__(
        self,
        session: AsyncSession,
        runner: Optional[TaskRunner] = None,
        *,
        trace: Optional[bool] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.runner = runner or TaskRunner()
        self.trace = settings.TRACE_GRAPH if trace is None else trace
        self.log = log or logger

    def _trace(self, message: str):
        if self.trace:
            self.log.info(message)
        else:
            self.log.debug(message)

    async def _require_user(self, session: AsyncSession, user_id: str, operation: str) -> User:
        user = await crud_user.get_user(session, user_id)
        if user is None:
            raise NotFound(f"{operation}: user {user_id!r} not found")
        return user

    async def follow_by_id(self, user_id: str, following_id: str) -> bool:
        """
        Make ``user_id`` follow ``following_id``. Returns True when a new edge
        was written, False when it already existed.
        """
        async def _follow(session: AsyncSession) -> bool:
            await self._require_user(session, user_id, "follow_by_id")
            await self._require_user(session, following_id, "follow_by_id")

            existing = await session.exec(
                select(UserFollow).where(
                    UserFollow.follower_id == user_id,
                    UserFollow.followed_id == following_id,
                )
            )
            if existing.first() is not None:
                self._trace(f"follow_by_id: {user_id} already follows {following_id}")
                return False

            session.add(UserFollow(follower_id=user_id, followed_id=following_id))
            # Commits with the edge, so a redelivered follow never loses it
            self.runner.enqueue(session, I_NOW_FOLLOW, user_id=user_id, following_id=following_id)
            self._trace(f"follow_by_id: {user_id} -> {following_id}")
            return True

        return await run_in_transaction(
            self.session, _follow, operation=f"follow_by_id {user_id} {following_id}"
        )

    async def follow(self, user_id: str, email_segment: str) -> str:
        """
        Follow whoever owns an e-mail address. If nobody does yet, remember the
        intent so find_follows can complete it when they join.
        Returns FOLLOWING or PENDING.
        """
        email = decode_email(email_segment)

        keys = await crud_user.get_user_ids_by_email(self.session, email)
        if keys:
            self._trace(f"follow: found ({len(keys)}) {email} {keys[0]}")
            await self.follow_by_id(user_id, keys[0])
            return FOLLOWING

        self._trace(f"follow: NOT FOUND {email}")

        async def _remember(session: AsyncSession) -> bool:
            await self._require_user(session, user_id, "follow")
            existing = await session.exec(
                select(FollowIntent).where(
                    FollowIntent.user_id == user_id,
                    FollowIntent.email == email,
                ).execution_options(populate_existing=True)
            )
            intent = existing.first()
            if intent is None:
                session.add(FollowIntent(user_id=user_id, email=email))
                return True
            if intent.resolved_at is not None:
                # The address was claimed before and has since been released
                intent.resolved_at = None
                session.add(intent)
                return True
            return False

        await run_in_transaction(self.session, _remember, operation=f"follow {user_id} {email}")
        return PENDING

    async def find_follows(self, user_id: str, email: str) -> int:
        """
        Fan out the pending intents for ``email`` now that ``user_id`` owns it:
        one follow_by_id task per waiting user. Intents are marked resolved in
        the same transaction as the enqueues. Returns the number of tasks.
        """
        email = crud_user.normalize_email(email)
        if not email:
            return 0

        async def _fan_out(session: AsyncSession) -> int:
            result = await session.exec(
                select(FollowIntent).where(
                    FollowIntent.email == email,
                    FollowIntent.resolved_at.is_(None),
                )
            )
            intents = list(result.all())
            now = datetime.utcnow()
            for intent in intents:
                self.runner.enqueue(
                    session, FOLLOW_BY_ID, user_id=intent.user_id, following_id=user_id
                )
                intent.resolved_at = now
                session.add(intent)
            return len(intents)

        count = await run_in_transaction(self.session, _fan_out, operation=f"find_follows {user_id}")
        self._trace(f"find_follows: {email} -> {user_id}, {count} follows scheduled")
        return count

    async def statistics(self, user_id: str) -> Stats:
        """Following/follower counts; -1/-1 when the user can't be read"""
        try:
            user = await crud_user.get_user(self.session, user_id)
            if user is None:
                self.log.error(f"statistics: user {user_id!r} not found")
                return Stats(following=-1, followers=-1)
            return Stats(
                following=await crud_user.count_following(self.session, user_id),
                followers=await crud_user.count_followers(self.session, user_id),
            )
        except SQLAlchemyError as e:
            self.log.error(f"statistics {user_id}: {e}")
            return Stats(following=-1, followers=-1)

    async def get_following(self, user_id: str) -> List[User]:
        users = await crud_user.get_following(self.session, user_id)
        self._trace(f"get_following {user_id}: {[u.id for u in users]}")
        return users

    async def get_person(self, person_id: str) -> User:
        return await self._require_user(self.session, person_id, "get_person")

    async def register_user(
        self,
        user_id: str,
        display_name: str = "",
        email: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> Tuple[User, bool]:
        """
        Create the account on first login, refresh the profile afterwards.
        Every login with an e-mail schedules find_follows, which also picks up
        intents that raced with an earlier signup.
        """
        email = crud_user.normalize_email(email)

        async def _register(session: AsyncSession) -> Tuple[User, bool]:
            if email:
                owners = await crud_user.get_user_ids_by_email(session, email)
                if any(owner != user_id for owner in owners):
                    raise AlreadyExists(f"register_user: {email} belongs to another account")

            user = await crud_user.get_user(session, user_id)
            created = user is None
            if created:
                user = User(id=user_id, display_name=display_name or "", email=email, photo_url=photo_url)
            else:
                if display_name:
                    user.display_name = display_name
                if email:
                    user.email = email
                if photo_url:
                    user.photo_url = photo_url
            session.add(user)

            if user.email:
                self.runner.enqueue(session, FIND_FOLLOWS, user_id=user_id, email=user.email)
            return user, created

        user, created = await run_in_transaction(
            self.session, _register, operation=f"register_user {user_id}"
        )
        self._trace(f"register_user {user_id} created={created}")
        return user, created

    async def wipeout(self, user_id: str) -> bool:
        """Delete a user and everything they own or authored"""
        async def _wipe(session: AsyncSession) -> bool:
            user = await crud_user.get_user(session, user_id)
            if user is None:
                return False

            photo_ids = await crud_photo.get_photo_ids_for_user(session, user_id)
            if photo_ids:
                for model in (PhotoLike, PhotoComment, PhotoFlag, PhotoReview):
                    await session.execute(delete(model).where(model.photo_id.in_(photo_ids)))
                await session.execute(delete(Photo).where(Photo.id.in_(photo_ids)))

            await session.execute(delete(PhotoLike).where(PhotoLike.user_id == user_id))
            await session.execute(delete(PhotoComment).where(PhotoComment.person_id == user_id))
            await session.execute(delete(PhotoFlag).where(PhotoFlag.user_id == user_id))
            await session.execute(delete(PhotoReview).where(PhotoReview.moderator_id == user_id))
            await session.execute(
                delete(UserFollow).where(
                    or_(UserFollow.follower_id == user_id, UserFollow.followed_id == user_id)
                )
            )
            await session.execute(delete(FollowIntent).where(FollowIntent.user_id == user_id))
            await session.execute(
                delete(Notification).where(
                    or_(Notification.recipient_id == user_id, Notification.actor_id == user_id)
                )
            )
            await session.delete(user)
            return True

        return await run_in_transaction(self.session, _wipe, operation=f"wipeout {user_id}")
