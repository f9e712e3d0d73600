import pytest
from sqlalchemy.exc import OperationalError

from abelana.core.exceptions import MalformedInput
from abelana.crud import user as crud_user
from abelana.models.follow import UserFollow
from abelana.services.engagement import EngagementService
from abelana.services.timeline import TimelineReader, parse_date_cursor


def test_parse_date_cursor():
    assert parse_date_cursor(None) is None
    assert parse_date_cursor("") is None
    assert parse_date_cursor("0") is None
    assert parse_date_cursor("1400000000") == 1400000000
    with pytest.raises(MalformedInput):
        parse_date_cursor("yesterday")


class TestProfileForUser:

    @pytest.mark.asyncio
    async def test_pages_newest_first(self, session, create_user, create_photo):
        await create_user("alice", display_name="Alice")
        for i, date in enumerate((100, 200, 300, 400, 500)):
            await create_photo("alice", f"p{i}", date)
        reader = TimelineReader(session, batch_size=2)

        page = await reader.profile_for_user("alice")
        assert [e.created for e in page] == [500, 400]
        assert all(e.name == "Alice" and e.userid == "alice" for e in page)
        assert all(e.likes == -1 and e.ilike is False for e in page)

        page = await reader.profile_for_user("alice", str(page[-1].created))
        assert [e.created for e in page] == [300, 200]

        page = await reader.profile_for_user("alice", "200")
        assert [e.created for e in page] == [100]

        assert await reader.profile_for_user("alice", "100") == []

    @pytest.mark.asyncio
    async def test_cursor_is_exclusive(self, session, create_user, create_photo):
        await create_user("alice")
        await create_photo("alice", "old", 100)
        await create_photo("alice", "new", 200)

        page = await TimelineReader(session).profile_for_user("alice", "200")
        assert [e.photoid for e in page] == ["alice.old"]

    @pytest.mark.asyncio
    async def test_malformed_cursor_starts_from_the_top(self, session, create_user, create_photo):
        await create_user("alice")
        await create_photo("alice", "p1", 100)
        await create_photo("alice", "p2", 200)

        page = await TimelineReader(session).profile_for_user("alice", "not-a-date")
        assert [e.photoid for e in page] == ["alice.p2", "alice.p1"]

    @pytest.mark.asyncio
    async def test_unknown_user_is_empty(self, session):
        assert await TimelineReader(session).profile_for_user("ghost") == []

    @pytest.mark.asyncio
    async def test_store_error_degrades_to_empty(self, session, create_user, create_photo, monkeypatch):
        await create_user("alice")
        await create_photo("alice", "p1", 100)

        async def unavailable(session, user_id):
            raise OperationalError("SELECT user", None, Exception("connection reset"))

        monkeypatch.setattr(crud_user, "get_user", unavailable)
        assert await TimelineReader(session).profile_for_user("alice") == []

    @pytest.mark.asyncio
    async def test_excludes_other_users(self, session, create_user, create_photo):
        await create_user("alice")
        await create_user("bob")
        await create_photo("alice", "p1", 100)
        await create_photo("bob", "p1", 200)

        page = await TimelineReader(session).profile_for_user("alice")
        assert [e.photoid for e in page] == ["alice.p1"]


class TestGetTimeline:

    async def _follow(self, session, follower_id, followed_id):
        session.add(UserFollow(follower_id=follower_id, followed_id=followed_id))
        await session.commit()

    @pytest.mark.asyncio
    async def test_own_and_followed_photos_only(self, session, create_user, create_photo):
        await create_user("alice", display_name="Alice")
        await create_user("bob", display_name="Bob")
        await create_user("carol")
        await self._follow(session, "alice", "bob")
        await create_photo("alice", "a1", 300)
        await create_photo("bob", "b1", 200)
        await create_photo("carol", "c1", 250)

        entries = await TimelineReader(session).get_timeline("alice")

        assert [(e.photoid, e.name) for e in entries] == [("alice.a1", "Alice"), ("bob.b1", "Bob")]

    @pytest.mark.asyncio
    async def test_live_like_counts(self, session, create_user, create_photo):
        await create_user("alice")
        await create_user("bob")
        await create_user("carol")
        await self._follow(session, "alice", "bob")
        await create_photo("bob", "b1", 200)
        await create_photo("bob", "b2", 100)
        engagement = EngagementService(session)
        await engagement.like("alice", "bob.b1")
        await engagement.like("carol", "bob.b1")

        entries = await TimelineReader(session).get_timeline("alice")

        assert [(e.photoid, e.likes, e.ilike) for e in entries] == [
            ("bob.b1", 2, True),
            ("bob.b2", 0, False),
        ]

    @pytest.mark.asyncio
    async def test_keyset_cursor_with_equal_dates(self, session, create_user, create_photo):
        await create_user("alice")
        await create_user("bob")
        await self._follow(session, "alice", "bob")
        await create_photo("bob", "p1", 100)
        await create_photo("bob", "p2", 100)
        await create_photo("alice", "p3", 100)
        reader = TimelineReader(session, batch_size=2)

        first = await reader.get_timeline("alice")
        second = await reader.get_timeline("alice", first[-1].photoid)

        seen = [e.photoid for e in first + second]
        assert seen == ["bob.p2", "bob.p1", "alice.p3"]
        assert await reader.get_timeline("alice", seen[-1]) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cursor", ["0", "", "nodot", "bob.missing"])
    async def test_unusable_cursor_starts_from_the_top(
        self, session, create_user, create_photo, cursor
    ):
        await create_user("alice")
        await create_photo("alice", "p1", 100)

        entries = await TimelineReader(session).get_timeline("alice", cursor)
        assert [e.photoid for e in entries] == ["alice.p1"]

    @pytest.mark.asyncio
    async def test_flagged_photos_are_hidden(self, session, create_user, create_photo):
        await create_user("alice")
        await create_photo("alice", "ok", 200)
        await create_photo("alice", "bad", 300, flagged=True)

        entries = await TimelineReader(session).get_timeline("alice")
        assert [e.photoid for e in entries] == ["alice.ok"]
