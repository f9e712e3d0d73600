"""
Photo endpoints: comments, likes, flags and the upload pipeline's push
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from abelana.api.dependencies import CurrentUserId, DbSession, Engagement, get_task_runner
from abelana.core.exceptions import MalformedInput
from abelana.core.security import verify_push_token
from abelana.crud.photo import split_photo_id
from abelana.schemas.envelope import Comment, Comments, Status
from abelana.schemas.photo import CommentCreate
from abelana.tasks.runner import ADD_PHOTO, TaskRunner

logger = logging.getLogger(__name__)

router = APIRouter(tags=["photos"])


@router.post("/photos/{photo_id}/comments", response_model=Status)
async def add_comment(photo_id: str, comment_in: CommentCreate, user_id: CurrentUserId, engagement: Engagement):
    try:
        await engagement.add_comment(user_id, photo_id, comment_in.text)
    except MalformedInput as e:
        logger.warning(f"add_comment: {e.detail}")
    return Status()


@router.get("/photos/{photo_id}/comments", response_model=Comments)
async def get_comments(photo_id: str, user_id: CurrentUserId, engagement: Engagement):
    try:
        comments = await engagement.get_comments(photo_id)
    except MalformedInput as e:
        logger.warning(f"get_comments: {e.detail}")
        comments = []
    return Comments(entries=[
        Comment(personid=c.person_id, text=c.text, time=c.time) for c in comments
    ])


@router.put("/photos/{photo_id}/like", response_model=Status)
async def like(photo_id: str, user_id: CurrentUserId, engagement: Engagement):
    try:
        await engagement.like(user_id, photo_id)
    except MalformedInput as e:
        logger.warning(f"like: {e.detail}")
    return Status()


@router.delete("/photos/{photo_id}/like", response_model=Status)
async def unlike(photo_id: str, user_id: CurrentUserId, engagement: Engagement):
    try:
        await engagement.unlike(user_id, photo_id)
    except MalformedInput as e:
        logger.warning(f"unlike: {e.detail}")
    return Status()


@router.post("/photos/{photo_id}/flag", response_model=Status)
async def flag(photo_id: str, user_id: CurrentUserId, engagement: Engagement):
    try:
        await engagement.flag(user_id, photo_id)
    except MalformedInput as e:
        logger.warning(f"flag: {e.detail}")
    return Status()


@router.post("/photopush/{super_id}", response_class=PlainTextResponse, dependencies=[Depends(verify_push_token)])
async def push_photo(super_id: str, db: DbSession, runner: TaskRunner = Depends(get_task_runner)):
    """
    The upload pipeline reports a new image. Only "<user>.<photo>" ids name
    a photo; anything else is acknowledged and ignored.
    """
    try:
        _, photo_id = split_photo_id(super_id)
    except MalformedInput:
        return "ok"
    await runner.call(db, ADD_PHOTO, photo_id=photo_id)
    return "ok"
