"""
User endpoints: login, following, stats, timeline and profiles
"""
import logging
from typing import Optional

from fastapi import APIRouter, status

from abelana.api.dependencies import CurrentUserId, Graph, Reader
from abelana.core.exceptions import MalformedInput
from abelana.models.user import User
from abelana.schemas.envelope import Person, Persons, Stats, Status, Timeline
from abelana.schemas.user import LoginRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _person(user: User, kind: str = None) -> Person:
    return Person(kind=kind, personid=user.id, email=user.email, name=user.display_name)


@router.post("/login", response_model=Status)
async def login(user_id: CurrentUserId, graph: Graph, body: Optional[LoginRequest] = None):
    body = body or LoginRequest()
    await graph.register_user(
        user_id,
        display_name=body.display_name,
        email=body.email,
        photo_url=body.photo_url,
    )
    return Status()


@router.delete("/me", response_model=Status)
async def wipeout(user_id: CurrentUserId, graph: Graph):
    await graph.wipeout(user_id)
    return Status()


@router.get("/me/following", response_model=Persons, response_model_exclude_none=True)
async def get_following(user_id: CurrentUserId, graph: Graph):
    users = await graph.get_following(user_id)
    return Persons(persons=[_person(u) for u in users])


@router.put("/me/following/{person_id}", response_model=Status)
async def follow_by_id(person_id: str, user_id: CurrentUserId, graph: Graph):
    await graph.follow_by_id(user_id, person_id)
    return Status()


@router.get("/me/following/{person_id}", response_model=Person, response_model_exclude_none=True)
async def get_person(person_id: str, user_id: CurrentUserId, graph: Graph):
    user = await graph.get_person(person_id)
    return _person(user, kind="abelana#follower")


@router.get("/me/following/{person_id}/profile/{last_date}", response_model=Timeline)
async def following_profile(person_id: str, last_date: str, user_id: CurrentUserId, reader: Reader):
    return Timeline(entries=await reader.profile_for_user(person_id, last_date))


@router.put("/me/follow/{email}", response_model=Status)
async def follow(email: str, user_id: CurrentUserId, graph: Graph):
    try:
        await graph.follow(user_id, email)
    except MalformedInput as e:
        # The client gets nothing actionable back for a bad address
        logger.warning(f"follow: {user_id}: {e.detail}")
    return Status()


@router.get("/me/stats", response_model=Stats)
async def statistics(user_id: CurrentUserId, graph: Graph):
    return await graph.statistics(user_id)


@router.get("/me/timeline/{last_id}", response_model=Timeline)
async def get_timeline(last_id: str, user_id: CurrentUserId, reader: Reader):
    return Timeline(entries=await reader.get_timeline(user_id, last_id))


@router.get("/me/profile/{last_date}", response_model=Timeline)
async def my_profile(last_date: str, user_id: CurrentUserId, reader: Reader):
    return Timeline(entries=await reader.profile_for_user(user_id, last_date))


@router.post("/me/import/{provider}/{key}", response_model=Status, status_code=status.HTTP_200_OK)
async def import_contacts(provider: str, key: str, user_id: CurrentUserId):
    # Contact import is not supported; accepted so older clients keep working
    return Status()


@router.put("/me/device/{reg_id}", response_model=Status)
async def register_device(reg_id: str, user_id: CurrentUserId):
    return Status()


@router.delete("/me/device/{reg_id}", response_model=Status)
async def unregister_device(reg_id: str, user_id: CurrentUserId):
    return Status()
