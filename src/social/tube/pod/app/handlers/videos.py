"""
Video Handlers

- POST   /api/v1/videos       - Upload a video (multipart: name, description, tags, videofile)
- GET    /api/v1/videos       - List videos (?start, ?count, ?sort)
- GET    /api/v1/videos/{id}  - One video
- DELETE /api/v1/videos/{id}  - Remove a video (its author or an admin)

The upload is authenticated before the body is read, so an anonymous client never gets
bytes onto disk. The file is stored first and the ledger row written after; when the row
cannot be written the stored file is discarded again.
"""

import logging
from typing import AsyncIterator, Dict, List, Optional

from aiohttp import BodyPartReader, web

from social.tube.pod.app.config import (
    DatabaseSessionMakerAppKey,
    MediaStoreAppKey,
    MetricsClientAppKey,
    SettingsAppKey,
)
from social.tube.pod.app.handlers.helpers import any_of, guard, is_admin, is_owner
from social.tube.pod.app.handlers.users import discard_media, listing_query
from social.tube.pod.errors import ValidationError
from social.tube.pod.library import videos
from social.tube.pod.library.listing import clamp_count

logger = logging.getLogger(__name__)

TAG_FIELDS = ("tags", "tags[]")


async def read_chunks(part: BodyPartReader) -> AsyncIterator[bytes]:
    while True:
        chunk = await part.read_chunk()
        if not chunk:
            break
        yield chunk


async def handle_videos_upload(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    media_store = request.app[MediaStoreAppKey]
    metrics_client = request.app[MetricsClientAppKey]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request)

    if not request.content_type.startswith("multipart/"):
        raise ValidationError.invalid_payload("multipart/form-data body required")

    fields: Dict[str, str] = {}
    tags: List[str] = []
    file_ref: Optional[str] = None

    reader = await request.multipart()
    try:
        while True:
            part = await reader.next()
            if part is None:
                break
            if not isinstance(part, BodyPartReader):
                continue
            if part.name == "videofile":
                if file_ref is not None:
                    raise ValidationError.invalid_payload("only one videofile is accepted")
                file_ref = await media_store.save(read_chunks(part), part.filename or "")
            elif part.name in TAG_FIELDS:
                tags.append(await part.text())
            elif part.name in ("name", "description"):
                fields[part.name] = await part.text()
            else:
                await part.release()

        if file_ref is None:
            raise ValidationError.invalid_payload("videofile is required")

        async with database_session_maker() as database_session:
            video = await videos.create(
                database_session,
                context.user_id,
                fields.get("name", ""),
                fields.get("description", ""),
                tags,
                file_ref,
            )
    except Exception:
        if file_ref is not None:
            await discard_media(media_store, file_ref)
        raise

    metrics_client.increment("video.uploaded", 1)
    logger.info("User %s uploaded video %s", context.user_id, video.guid)
    return web.Response(status=204)


async def handle_videos_list(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    query = listing_query(request)

    async with database_session_maker() as database_session:
        page = await videos.list_videos(
            database_session,
            start=query.start,
            count=clamp_count(query.count, settings.default_page_size, settings.max_page_size),
            sort=query.sort,
        )

    return web.json_response(
        {
            "total": page.total,
            "data": [entry.to_json(settings.external_hostname) for entry in page.items],
        }
    )


async def handle_videos_get(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    guid = request.match_info["video_id"]

    async with database_session_maker() as database_session:
        entry = await videos.get(database_session, guid)

    return web.json_response(entry.to_json(settings.external_hostname))


async def handle_videos_delete(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    media_store = request.app[MediaStoreAppKey]
    guid = request.match_info["video_id"]

    async def owner(database_session) -> int:
        return await videos.owner_of(database_session, guid)

    async with database_session_maker() as database_session:
        context = await guard(database_session, request, any_of(is_owner, is_admin), owner)
        video = await videos.delete_video(database_session, guid)

    logger.info("User %s removed video %s", context.user_id, guid)
    await discard_media(media_store, video.file_ref)
    return web.Response(status=204)
