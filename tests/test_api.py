import base64

import pytest
from httpx import AsyncClient
from sqlmodel import select

from abelana.core.config import settings
from abelana.models.task import DeferredTask
from abelana.tasks.runner import ADD_PHOTO, FIND_FOLLOWS

STATUS_OK = {"kind": "abelana#status", "status": "ok"}


def encode(email):
    return base64.urlsafe_b64encode(email.encode()).decode().rstrip("=")


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_requires_a_token(client: AsyncClient):
    response = await client.get("/api/users/me/stats")
    assert response.status_code == 401

    response = await client.get(
        "/api/users/me/stats", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_creates_user_and_schedules_reconciliation(
    client: AsyncClient, session, auth_headers
):
    response = await client.post(
        "/api/users/login",
        json={"display_name": "Alice", "email": "Alice@Example.com"},
        headers=auth_headers("alice"),
    )
    assert response.status_code == 200
    assert response.json() == STATUS_OK

    result = await session.exec(select(DeferredTask).where(DeferredTask.name == FIND_FOLLOWS))
    [task] = result.all()
    assert task.payload == {"user_id": "alice", "email": "alice@example.com"}


@pytest.mark.asyncio
async def test_login_with_taken_email(client: AsyncClient, create_user, auth_headers):
    await create_user("alice", email="alice@example.com")

    response = await client.post(
        "/api/users/login",
        json={"display_name": "Mallory", "email": "alice@example.com"},
        headers=auth_headers("mallory"),
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "already_exists"


@pytest.mark.asyncio
async def test_follow_by_id_and_stats(client: AsyncClient, create_user, auth_headers):
    await create_user("alice")
    await create_user("bob", email="bob@example.com")

    response = await client.put("/api/users/me/following/bob", headers=auth_headers("alice"))
    assert response.json() == STATUS_OK

    response = await client.get("/api/users/me/stats", headers=auth_headers("alice"))
    assert response.json() == {"following": 1, "followers": 0}

    response = await client.get("/api/users/me/following", headers=auth_headers("alice"))
    data = response.json()
    assert data["kind"] == "abelana#followerList"
    assert data["persons"] == [{"personid": "bob", "email": "bob@example.com", "name": "Bob"}]


@pytest.mark.asyncio
async def test_follow_unknown_person(client: AsyncClient, create_user, auth_headers):
    await create_user("alice")

    response = await client.put("/api/users/me/following/ghost", headers=auth_headers("alice"))
    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"


@pytest.mark.asyncio
async def test_get_person(client: AsyncClient, create_user, auth_headers):
    await create_user("alice")
    await create_user("bob")

    response = await client.get("/api/users/me/following/bob", headers=auth_headers("alice"))
    assert response.status_code == 200
    assert response.json() == {"kind": "abelana#follower", "personid": "bob", "name": "Bob"}


@pytest.mark.asyncio
async def test_follow_by_email(client: AsyncClient, create_user, auth_headers):
    await create_user("alice")
    await create_user("bob", email="bob@example.com")

    response = await client.put(
        f"/api/users/me/follow/{encode('bob@example.com')}", headers=auth_headers("alice")
    )
    assert response.json() == STATUS_OK

    response = await client.get("/api/users/me/stats", headers=auth_headers("bob"))
    assert response.json() == {"following": 0, "followers": 1}


@pytest.mark.asyncio
async def test_follow_by_malformed_email_is_acknowledged(client: AsyncClient, create_user, auth_headers):
    await create_user("alice")

    response = await client.put(
        f"/api/users/me/follow/{encode('nobody')}", headers=auth_headers("alice")
    )
    assert response.status_code == 200
    assert response.json() == STATUS_OK


@pytest.mark.asyncio
async def test_stats_for_unknown_user(client: AsyncClient, auth_headers):
    response = await client.get("/api/users/me/stats", headers=auth_headers("ghost"))
    assert response.json() == {"following": -1, "followers": -1}


@pytest.mark.asyncio
async def test_likes_show_on_timeline(client: AsyncClient, create_user, create_photo, auth_headers):
    await create_user("alice", display_name="Alice")
    await create_photo("alice", "p1", 1400000000)

    response = await client.put("/api/photos/alice.p1/like", headers=auth_headers("alice"))
    assert response.json() == STATUS_OK

    response = await client.get("/api/users/me/timeline/0", headers=auth_headers("alice"))
    data = response.json()
    assert data["kind"] == "abelana#timeline"
    assert data["entries"] == [{
        "created": 1400000000,
        "userid": "alice",
        "name": "Alice",
        "photoid": "alice.p1",
        "likes": 1,
        "ilike": True,
    }]

    await client.delete("/api/photos/alice.p1/like", headers=auth_headers("alice"))
    response = await client.get("/api/users/me/timeline/0", headers=auth_headers("alice"))
    assert response.json()["entries"][0]["likes"] == 0


@pytest.mark.asyncio
async def test_malformed_photo_id_is_acknowledged(client: AsyncClient, auth_headers):
    response = await client.put("/api/photos/nodot/like", headers=auth_headers("alice"))
    assert response.status_code == 200
    assert response.json() == STATUS_OK

    response = await client.get("/api/photos/nodot/comments", headers=auth_headers("alice"))
    assert response.json() == {"kind": "abelana#comments", "entries": []}


@pytest.mark.asyncio
async def test_comments(client: AsyncClient, create_user, create_photo, auth_headers):
    await create_user("alice")
    await create_user("bob")
    await create_photo("alice", "p1", 100)

    response = await client.post(
        "/api/photos/alice.p1/comments", json={"text": "lovely"}, headers=auth_headers("bob")
    )
    assert response.json() == STATUS_OK

    response = await client.get("/api/photos/alice.p1/comments", headers=auth_headers("alice"))
    [entry] = response.json()["entries"]
    assert (entry["personid"], entry["text"]) == ("bob", "lovely")


@pytest.mark.asyncio
async def test_profile_pages(client: AsyncClient, create_user, create_photo, auth_headers):
    await create_user("alice")
    await create_user("bob")
    await create_photo("bob", "p1", 100)
    await create_photo("bob", "p2", 200)

    response = await client.get(
        "/api/users/me/following/bob/profile/200", headers=auth_headers("alice")
    )
    entries = response.json()["entries"]
    assert [(e["photoid"], e["likes"]) for e in entries] == [("bob.p1", -1)]

    response = await client.get("/api/users/me/profile/0", headers=auth_headers("bob"))
    assert [e["photoid"] for e in response.json()["entries"]] == ["bob.p2", "bob.p1"]


@pytest.mark.asyncio
async def test_flag_and_review(client: AsyncClient, create_user, create_photo, auth_headers):
    await create_user("alice")
    await create_user("bob")
    await create_user("mod", is_moderator=True)
    await create_photo("alice", "p1", 100)

    await client.post("/api/photos/alice.p1/flag", headers=auth_headers("bob"))
    response = await client.get("/api/users/me/timeline/0", headers=auth_headers("alice"))
    assert response.json()["entries"] == []

    response = await client.post(
        "/api/moderation/photos/alice.p1/review", headers=auth_headers("bob")
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/moderation/photos/alice.p1/review",
        json={"approved": True},
        headers=auth_headers("mod"),
    )
    assert response.status_code == 200
    assert response.json() == {"photoid": "alice.p1", "approvals": 1, "visible": False}


@pytest.mark.asyncio
async def test_photo_push_schedules_registration(client: AsyncClient, session, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")
    monkeypatch.setattr(settings, "PUSH_TOKEN", None)

    response = await client.post("/api/photopush/alice.p1")
    assert response.status_code == 200
    assert response.text == "ok"

    response = await client.post("/api/photopush/not-a-photo")
    assert response.text == "ok"

    result = await session.exec(select(DeferredTask).where(DeferredTask.name == ADD_PHOTO))
    [task] = result.all()
    assert task.payload == {"photo_id": "alice.p1"}


@pytest.mark.asyncio
async def test_photo_push_is_closed_outside_development(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(settings, "PUSH_TOKEN", None)

    response = await client.post("/api/photopush/alice.p1")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_photo_push_checks_the_token(client: AsyncClient, session, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(settings, "PUSH_TOKEN", "pipeline-secret")

    response = await client.post(
        "/api/photopush/alice.p1", headers={"Authorization": "Bearer wrong"}
    )
    assert response.status_code == 401

    response = await client.post(
        "/api/photopush/alice.p1", headers={"Authorization": "Bearer pipeline-secret"}
    )
    assert response.status_code == 200

    result = await session.exec(select(DeferredTask).where(DeferredTask.name == ADD_PHOTO))
    assert len(result.all()) == 1


@pytest.mark.asyncio
async def test_wipeout(client: AsyncClient, create_user, auth_headers):
    await create_user("alice")
    await create_user("bob")
    await client.put("/api/users/me/following/bob", headers=auth_headers("alice"))

    response = await client.delete("/api/users/me", headers=auth_headers("alice"))
    assert response.json() == STATUS_OK

    response = await client.get("/api/users/me/stats", headers=auth_headers("bob"))
    assert response.json() == {"following": 0, "followers": 0}
