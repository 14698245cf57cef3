"""
Tests for the video ownership ledger.
"""

import pytest
import pytest_asyncio

from social.tube.pod.errors import NotFound, ValidationError
from social.tube.pod.library import users, videos
from social.tube.pod.model.videos import Video
from tests.test_helpers import TEST_ITERATIONS, count_rows, generate_test_datetime


@pytest_asyncio.fixture
async def author(session):
    return await users.create(session, "author", "password", iterations=TEST_ITERATIONS)


class TestCreateVideo:
    async def test_create_and_get(self, session, author):
        video = await videos.create(
            session, author.id, "my super name", "my super description", ["tag1", "tag2"], "v.webm"
        )

        entry = await videos.get(session, video.guid)
        data = entry.to_json("http://localhost:9000")

        assert data["id"] == video.guid
        assert data["name"] == "my super name"
        assert data["description"] == "my super description"
        assert data["tags"] == ["tag1", "tag2"]
        assert data["author"] == "author"
        assert data["podHost"] == "http://localhost:9000"
        assert data["fileRef"] == "v.webm"
        assert data["createdDate"].endswith("Z")

        assert await videos.owner_of(session, video.guid) == author.id

    async def test_description_is_optional(self, session, author):
        video = await videos.create(session, author.id, "n", "", ["t1", "t2"], "v.webm")

        assert (await videos.get(session, video.guid)).video.description == ""

    @pytest.mark.parametrize(
        "name,description,tags",
        [
            ("", "description", []),
            ("x" * 51, "description", []),
            ("name", "x" * 251, []),
            ("name", "description", ["a"]),
            ("name", "description", ["x" * 11]),
            ("name", "description", ["t1", "t2", "t3", "t4"]),
        ],
    )
    async def test_create_rejects_invalid_fields(self, session, author, name, description, tags):
        with pytest.raises(ValidationError):
            await videos.create(session, author.id, name, description, tags, "v.webm")
        assert await count_rows(session, Video) == 0

    async def test_create_requires_an_existing_author(self, session):
        with pytest.raises(ValidationError):
            await videos.create(session, 4242, "name", "description", [], "v.webm")


class TestListVideos:
    async def test_list_videos(self, session, author):
        first = await videos.create(
            session, author.id, "b video", "d", [], "1.webm", now=generate_test_datetime(-10)
        )
        second = await videos.create(
            session, author.id, "a video", "d", [], "2.webm", now=generate_test_datetime(-5)
        )

        page = await videos.list_videos(session)
        assert page.total == 2
        assert [e.video.guid for e in page.items] == [second.guid, first.guid]

        page = await videos.list_videos(session, sort="name", count=1)
        assert page.total == 2
        assert [e.video.name for e in page.items] == ["a video"]

        page = await videos.list_videos(session, sort="createdDate", start=1)
        assert [e.video.guid for e in page.items] == [second.guid]

        with pytest.raises(ValidationError):
            await videos.list_videos(session, sort="author")


class TestDeleteVideo:
    async def test_delete_video(self, session, author):
        video = await videos.create(session, author.id, "name", "d", [], "v.webm")

        deleted = await videos.delete_video(session, video.guid)

        assert deleted.file_ref == "v.webm"
        with pytest.raises(NotFound):
            await videos.get(session, video.guid)
        with pytest.raises(NotFound):
            await videos.owner_of(session, video.guid)
        with pytest.raises(NotFound):
            await videos.delete_video(session, video.guid)
