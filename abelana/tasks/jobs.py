"""
Task bodies run by the TaskWorker. Each one may be delivered more than once,
so each is idempotent.
"""

import logging

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from abelana.crud import user as crud_user
from abelana.db.database import run_in_transaction
from abelana.models.notification import Notification, NotificationType
from abelana.services.engagement import EngagementService
from abelana.services.graph import GraphService
from abelana.tasks.runner import (
    ADD_PHOTO,
    FIND_FOLLOWS,
    FOLLOW_BY_ID,
    I_NOW_FOLLOW,
    TaskRunner,
    registry,
)

logger = logging.getLogger(__name__)


@registry.register(FOLLOW_BY_ID)
async def follow_by_id(session: AsyncSession, runner: TaskRunner, *, user_id: str, following_id: str):
    await GraphService(session, runner).follow_by_id(user_id, following_id)


@registry.register(FIND_FOLLOWS)
async def find_follows(session: AsyncSession, runner: TaskRunner, *, user_id: str, email: str):
    await GraphService(session, runner).find_follows(user_id, email)


@registry.register(ADD_PHOTO)
async def add_photo(session: AsyncSession, runner: TaskRunner, *, photo_id: str):
    await EngagementService(session).add_photo(photo_id)


@registry.register(I_NOW_FOLLOW)
async def i_now_follow(session: AsyncSession, runner: TaskRunner, *, user_id: str, following_id: str):
    """Tell ``following_id`` they have a new follower (in-app notification)"""

    async def _notify(s: AsyncSession) -> bool:
        follower = await crud_user.get_user(s, user_id)
        if follower is None or await crud_user.get_user(s, following_id) is None:
            logger.info(f"i_now_follow: {user_id} or {following_id} no longer exists")
            return False

        existing = await s.exec(
            select(Notification).where(
                Notification.recipient_id == following_id,
                Notification.actor_id == user_id,
                Notification.type == NotificationType.NEW_FOLLOWER,
            )
        )
        if existing.first() is not None:
            return False

        s.add(
            Notification(
                recipient_id=following_id,
                actor_id=user_id,
                type=NotificationType.NEW_FOLLOWER,
                message=f"{follower.display_name or 'Someone'} now follows you.",
            )
        )
        return True

    await run_in_transaction(session, _notify, operation=f"i_now_follow {user_id} {following_id}")
