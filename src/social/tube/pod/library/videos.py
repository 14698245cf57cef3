"""Video ownership ledger.

Each video record is bound to exactly one authoring user at creation. The ledger itself
does not check who is asking: the authorization guard confirms ownership before
``delete_video`` is called.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from ulid import ULID

from social.tube.pod.errors import NotFound, ValidationError
from social.tube.pod.library.listing import Page, apply_sort
from social.tube.pod.model.base import isoformat, utcnow
from social.tube.pod.model.users import User
from social.tube.pod.model.videos import Video

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 250
MAX_TAGS = 3
TAG_MIN_LENGTH = 2
TAG_MAX_LENGTH = 10

DEFAULT_SORT = "-createdDate"
SORT_FIELDS = {
    "name": Video.name,
    "createdDate": Video.created_at,
}


@dataclass(frozen=True)
class VideoEntry:
    """A video together with its author's username."""

    video: Video
    author: str

    def to_json(self, pod_host: str) -> Dict[str, Any]:
        return {
            "id": self.video.guid,
            "name": self.video.name,
            "description": self.video.description,
            "tags": list(self.video.tags),
            "author": self.author,
            "podHost": pod_host,
            "fileRef": self.video.file_ref,
            "createdDate": isoformat(self.video.created_at),
        }


def check_fields(name: str, description: str, tags: Sequence[str]) -> List[str]:
    """Validate video metadata and return the tags as a list, order preserved."""
    if not name or len(name) > NAME_MAX_LENGTH:
        raise ValidationError.invalid_payload("name")
    if not isinstance(description, str) or len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError.invalid_payload("description")
    tags = list(tags)
    if len(tags) > MAX_TAGS:
        raise ValidationError.invalid_payload("tags")
    for tag in tags:
        if not isinstance(tag, str) or not TAG_MIN_LENGTH <= len(tag) <= TAG_MAX_LENGTH:
            raise ValidationError.invalid_payload("tags")
    return tags


async def create(
    database_session: AsyncSession,
    owner_id: int,
    name: str,
    description: str,
    tags: Sequence[str],
    file_ref: str,
    now: Optional[datetime] = None,
) -> Video:
    """
    Record a new video authored by ``owner_id``.

    Raises:
        ValidationError: Malformed fields, or the owner does not exist
    """
    tags = check_fields(name, description, tags)
    video = Video(
        guid=str(ULID()),
        author_id=owner_id,
        name=name,
        description=description,
        tags=tags,
        file_ref=file_ref,
        created_at=now or utcnow(),
    )

    try:
        async with database_session.begin():
            stmt = select(User.id).where(User.id == owner_id).with_for_update()
            if (await database_session.scalars(stmt)).first() is None:
                raise ValidationError.unknown_author(owner_id)
            database_session.add(video)
    except IntegrityError as e:
        # The owner was deleted before the insert reached the database.
        raise ValidationError.unknown_author(owner_id) from e

    logger.info("User %s created video %s", owner_id, video.guid)
    return video


async def list_videos(
    database_session: AsyncSession,
    start: int = 0,
    count: Optional[int] = None,
    sort: Optional[str] = None,
) -> Page[VideoEntry]:
    """
    List videos with their authors.

    The inner join to users means a video can only be listed while its author exists;
    total and items come from the same transaction.
    """
    stmt = select(Video, User.username).join(User, Video.author_id == User.id)
    stmt = apply_sort(stmt, sort or DEFAULT_SORT, SORT_FIELDS, Video.guid)
    stmt = stmt.offset(start)
    if count is not None:
        stmt = stmt.limit(count)

    total_stmt = (
        select(func.count())
        .select_from(Video)
        .join(User, Video.author_id == User.id)
    )

    async with database_session.begin():
        total = await database_session.scalar(total_stmt)
        rows = (await database_session.execute(stmt)).all()

    return Page(
        total=total or 0,
        items=[VideoEntry(video=video, author=username) for video, username in rows],
    )


async def get(database_session: AsyncSession, guid: str) -> VideoEntry:
    stmt = (
        select(Video, User.username)
        .join(User, Video.author_id == User.id)
        .where(Video.guid == guid)
    )
    async with database_session.begin():
        row = (await database_session.execute(stmt)).first()
    if row is None:
        raise NotFound.video(guid)
    return VideoEntry(video=row[0], author=row[1])


async def owner_of(database_session: AsyncSession, guid: str) -> int:
    async with database_session.begin():
        author_id = await database_session.scalar(
            select(Video.author_id).where(Video.guid == guid)
        )
    if author_id is None:
        raise NotFound.video(guid)
    return author_id


async def delete_video(database_session: AsyncSession, guid: str) -> Video:
    async with database_session.begin():
        video = await database_session.get(Video, guid)
        if video is None:
            raise NotFound.video(guid)
        await database_session.delete(video)

    logger.info("Deleted video %s of user %s", guid, video.author_id)
    return video
