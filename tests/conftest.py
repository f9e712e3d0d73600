import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as AsyncSessionSQLModel

import abelana.models  # noqa: F401
from abelana.core.security import create_access_token
from abelana.db.database import get_db
from abelana.main import app
from abelana.models.photo import Photo
from abelana.models.user import User
from abelana.tasks.runner import TaskRunner, TaskWorker


@pytest_asyncio.fixture(scope="function")
async def async_test_engine():
    """A fresh in-memory database per test, shared by every session."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(async_test_engine):
    return sessionmaker(
        bind=async_test_engine,
        class_=AsyncSessionSQLModel,
        expire_on_commit=False,
        autoflush=False
    )


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def runner():
    return TaskRunner()


@pytest.fixture
def worker(session_factory, runner):
    return TaskWorker(
        session_factory,
        runner,
        retry_delay_seconds=0,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def create_user(session):
    async def _create(user_id, email=None, display_name=None, is_moderator=False):
        user = User(
            id=user_id,
            display_name=display_name if display_name is not None else user_id.title(),
            email=email,
            is_moderator=is_moderator,
        )
        session.add(user)
        await session.commit()
        return user
    return _create


@pytest.fixture
def create_photo(session):
    async def _create(owner_id, suffix, date, flagged=False):
        photo = Photo(id=f"{owner_id}.{suffix}", user_id=owner_id, date=date, flagged=flagged)
        session.add(photo)
        await session.commit()
        return photo
    return _create


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers
