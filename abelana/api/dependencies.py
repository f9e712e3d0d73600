from typing import Annotated

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from abelana.core.security import get_current_user_id
from abelana.db.database import get_db
from abelana.services.engagement import EngagementService
from abelana.services.graph import GraphService
from abelana.services.timeline import TimelineReader
from abelana.tasks.runner import TaskRunner

task_runner = TaskRunner()


def get_task_runner() -> TaskRunner:
    return task_runner


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]


def get_graph_service(db: DbSession, runner: TaskRunner = Depends(get_task_runner)) -> GraphService:
    return GraphService(db, runner)


def get_engagement_service(db: DbSession) -> EngagementService:
    return EngagementService(db)


def get_timeline_reader(db: DbSession) -> TimelineReader:
    return TimelineReader(db)


Graph = Annotated[GraphService, Depends(get_graph_service)]
Engagement = Annotated[EngagementService, Depends(get_engagement_service)]
Reader = Annotated[TimelineReader, Depends(get_timeline_reader)]
