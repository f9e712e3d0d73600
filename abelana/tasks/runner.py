"""
Deferred task runner.

Tasks are enqueued as rows in the ``deferredtask`` outbox table, inside the
caller's session, so an enqueue commits or rolls back together with the work
that produced it. A TaskWorker later claims due rows and runs the registered
coroutine for each one. Delivery is at-least-once: a worker that dies between
running a task and marking it done leaves the row to be reclaimed once its
lease expires, so every task body must be idempotent.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from abelana.core.config import settings
from abelana.core.exceptions import MalformedInput, NotFound
from abelana.db.database import run_in_transaction
from abelana.models.task import DeferredTask, TaskStatus

logger = logging.getLogger(__name__)

# Task names
FOLLOW_BY_ID = "follow_by_id"
FIND_FOLLOWS = "find_follows"
I_NOW_FOLLOW = "i_now_follow"
ADD_PHOTO = "add_photo"

TaskFunc = Callable[..., Awaitable[Any]]


class TaskRegistry:
    """Maps task names to coroutines taking (session, runner, **payload)"""

    def __init__(self):
        self._tasks: Dict[str, TaskFunc] = {}

    def register(self, name: str) -> Callable[[TaskFunc], TaskFunc]:
        def decorator(func: TaskFunc) -> TaskFunc:
            if name in self._tasks and self._tasks[name] is not func:
                raise ValueError(f"Task {name!r} is already registered")
            self._tasks[name] = func
            return func
        return decorator

    def get(self, name: str) -> Optional[TaskFunc]:
        return self._tasks.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tasks


registry = TaskRegistry()


class TaskRunner:
    """Enqueue side of the deferred task runner"""

    def enqueue(self, session: AsyncSession, name: str, **payload: Any) -> DeferredTask:
        """Stage a task in ``session``. It is delivered once the session commits."""
        task = DeferredTask(name=name, payload=payload)
        session.add(task)
        logger.debug(f"enqueue {name} {payload}")
        return task

    async def call(self, session: AsyncSession, name: str, **payload: Any) -> DeferredTask:
        """Enqueue and commit immediately (fire-and-forget)"""
        async def _enqueue(s: AsyncSession) -> DeferredTask:
            return self.enqueue(s, name, **payload)

        return await run_in_transaction(session, _enqueue, operation=f"enqueue {name}")


class TaskWorker:
    """Claims due outbox rows and executes them"""

    def __init__(
        self,
        session_factory,
        runner: Optional[TaskRunner] = None,
        tasks: Optional[TaskRegistry] = None,
        *,
        batch_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        retry_delay_seconds: Optional[int] = None,
        poll_interval_seconds: Optional[float] = None,
        lease_seconds: Optional[int] = None,
    ):
        # Task bodies register themselves on import
        import abelana.tasks.jobs  # noqa: F401

        self.session_factory = session_factory
        self.runner = runner or TaskRunner()
        self.tasks = tasks or registry
        self.batch_size = batch_size or settings.TASK_BATCH_SIZE
        self.max_attempts = max_attempts or settings.TASK_MAX_ATTEMPTS
        self.retry_delay_seconds = (
            settings.TASK_RETRY_DELAY_SECONDS if retry_delay_seconds is None else retry_delay_seconds
        )
        self.poll_interval_seconds = poll_interval_seconds or settings.TASK_POLL_INTERVAL_SECONDS
        self.lease_seconds = lease_seconds or settings.TASK_LEASE_SECONDS
        self.running = False
        self._loop_task: Optional[asyncio.Task] = None

    async def start(self):
        """Start polling the outbox in the background"""
        if self.running:
            logger.warning("Task worker is already running")
            return
        self.running = True
        logger.info("Starting task worker")
        self._loop_task = asyncio.create_task(self._poll())

    async def stop(self):
        if not self.running:
            return
        self.running = False
        logger.info("Stopping task worker")
        if self._loop_task:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

    async def _poll(self):
        while self.running:
            try:
                processed = await self.run_pending()
            except Exception as e:
                logger.error(f"Task worker poll failed: {e}", exc_info=True)
                processed = 0
            if not processed:
                await asyncio.sleep(self.poll_interval_seconds)

    async def run_pending(self) -> int:
        """Run one batch of due tasks. Returns how many were attempted."""
        claimed = await self._claim_batch()
        for task_id in claimed:
            await self._execute(task_id)
        return len(claimed)

    async def drain(self, max_rounds: int = 100) -> int:
        """Run batches until nothing is due, following chains of enqueued tasks"""
        total = 0
        for _ in range(max_rounds):
            processed = await self.run_pending()
            if not processed:
                break
            total += processed
        return total

    async def _claim_batch(self) -> list:
        now = datetime.utcnow()
        stale = now - timedelta(seconds=self.lease_seconds)
        async with self.session_factory() as session:
            result = await session.execute(
                select(DeferredTask.id)
                .where(
                    or_(
                        and_(
                            DeferredTask.status == TaskStatus.PENDING,
                            DeferredTask.available_at <= now,
                        ),
                        and_(
                            DeferredTask.status == TaskStatus.RUNNING,
                            DeferredTask.updated_at < stale,
                        ),
                    )
                )
                .order_by(DeferredTask.available_at, DeferredTask.id)
                .limit(self.batch_size)
            )
            candidates = [row[0] for row in result.all()]

            claimed = []
            for task_id in candidates:
                # Conditional update so two workers never claim the same row
                outcome = await session.execute(
                    update(DeferredTask)
                    .where(
                        DeferredTask.id == task_id,
                        or_(
                            DeferredTask.status == TaskStatus.PENDING,
                            and_(
                                DeferredTask.status == TaskStatus.RUNNING,
                                DeferredTask.updated_at < stale,
                            ),
                        ),
                    )
                    .values(status=TaskStatus.RUNNING, updated_at=now)
                )
                if outcome.rowcount == 1:
                    claimed.append(task_id)
            await session.commit()
        return claimed

    async def _execute(self, task_id: int):
        async with self.session_factory() as session:
            task = await session.get(DeferredTask, task_id)
            if task is None:
                return
            name, payload = task.name, dict(task.payload or {})

        func = self.tasks.get(name)
        if func is None:
            logger.error(f"Task {task_id}: no task registered as {name!r}")
            await self._finish(task_id, error=f"unknown task {name!r}", permanent=True)
            return

        try:
            async with self.session_factory() as session:
                await func(session, self.runner, **payload)
        except (NotFound, MalformedInput) as e:
            # Retrying cannot make a missing user or a bad id valid
            logger.warning(f"Task {task_id} {name} dropped: {e.detail}")
            await self._finish(task_id, error=e.detail, permanent=True)
            return
        except Exception as e:
            logger.warning(f"Task {task_id} {name} failed: {e}", exc_info=True)
            await self._finish(task_id, error=f"{e.__class__.__name__}: {e}")
            return

        await self._finish(task_id)

    async def _finish(self, task_id: int, error: Optional[str] = None, permanent: bool = False):
        async with self.session_factory() as session:
            task = await session.get(DeferredTask, task_id)
            if task is None:
                return
            now = datetime.utcnow()
            task.updated_at = now
            if error is None:
                task.status = TaskStatus.DONE
                task.last_error = None
            else:
                task.attempts += 1
                task.last_error = error[:2000]
                if permanent or task.attempts >= self.max_attempts:
                    task.status = TaskStatus.FAILED
                    logger.error(f"Task {task_id} {task.name} gave up after {task.attempts} attempts")
                else:
                    task.status = TaskStatus.PENDING
                    task.available_at = now + timedelta(
                        seconds=self.retry_delay_seconds * task.attempts
                    )
            session.add(task)
            await session.commit()
