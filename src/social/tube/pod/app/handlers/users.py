"""
User Handlers

- POST   /api/v1/users        - Create a user (any valid token; admin to create admins)
- GET    /api/v1/users        - List users (?start, ?count, ?sort)
- GET    /api/v1/users/me     - The user owning the presented token
- GET    /api/v1/users/{id}   - One user
- PUT    /api/v1/users/{id}   - Change the password (the user only)
- DELETE /api/v1/users/{id}   - Delete the user, its videos and tokens (owner or admin)
"""

import logging
from typing import Optional

import pydantic
import sentry_sdk
from aiohttp import web
from pydantic import BaseModel

from social.tube.pod.app.config import (
    DatabaseSessionMakerAppKey,
    MediaStoreAppKey,
    SettingsAppKey,
)
from social.tube.pod.app.handlers.helpers import any_of, guard, is_admin, is_owner
from social.tube.pod.errors import Forbidden, ValidationError
from social.tube.pod.library import users
from social.tube.pod.library.listing import ListingQuery, clamp_count
from social.tube.pod.model.users import ROLE_ADMIN, ROLE_USER

logger = logging.getLogger(__name__)


class UserCreate(BaseModel):
    username: str
    password: str
    role: str = ROLE_USER


class UserUpdate(BaseModel):
    password: str


def path_user_id(request: web.Request) -> int:
    try:
        return int(request.match_info["user_id"])
    except ValueError:
        raise web.HTTPNotFound()


def listing_query(request: web.Request) -> ListingQuery:
    try:
        return ListingQuery.model_validate(dict(request.query))
    except pydantic.ValidationError:
        raise ValidationError.invalid_payload("query")


async def handle_users_create(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    database_session_maker = request.app[DatabaseSessionMakerAppKey]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request)

        try:
            payload = UserCreate.model_validate_json(await request.read())
        except (OSError, pydantic.ValidationError):
            raise ValidationError.invalid_payload()

        if payload.role == ROLE_ADMIN and not context.is_admin:
            raise Forbidden.admin_required()

        user = await users.create(
            database_session,
            payload.username,
            payload.password,
            role=payload.role,
            iterations=settings.password_hash_iterations,
        )

    return web.json_response({"id": user.id})


async def handle_users_list(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    query = listing_query(request)

    async with database_session_maker() as database_session:
        page = await users.list_users(
            database_session,
            start=query.start,
            count=clamp_count(query.count, settings.default_page_size, settings.max_page_size),
            sort=query.sort,
        )

    return web.json_response(
        {"total": page.total, "data": [user.to_json() for user in page.items]}
    )


async def handle_users_me(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request)
        user = await users.get(database_session, context.user_id)

    return web.json_response(user.to_json())


async def handle_users_get(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    user_id = path_user_id(request)

    async with database_session_maker() as database_session:
        user = await users.get(database_session, user_id)

    return web.json_response(user.to_json())


async def handle_users_update(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    user_id = path_user_id(request)

    async def owner(database_session) -> int:
        return (await users.get(database_session, user_id)).id

    async with database_session_maker() as database_session:
        await guard(database_session, request, is_owner, owner)

        try:
            payload = UserUpdate.model_validate_json(await request.read())
        except (OSError, pydantic.ValidationError):
            raise ValidationError.invalid_payload()

        await users.update_password(
            database_session,
            user_id,
            payload.password,
            iterations=settings.password_hash_iterations,
        )

    return web.Response(status=200)


async def handle_users_delete(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    media_store = request.app[MediaStoreAppKey]
    user_id = path_user_id(request)

    async def owner(database_session) -> int:
        return (await users.get(database_session, user_id)).id

    async with database_session_maker() as database_session:
        context = await guard(database_session, request, any_of(is_owner, is_admin), owner)
        file_refs = await users.delete_user(database_session, user_id)

    logger.info("User %s deleted user %s", context.user_id, user_id)

    for file_ref in file_refs:
        await discard_media(media_store, file_ref)

    return web.Response(status=200)


async def discard_media(media_store, file_ref: Optional[str]) -> None:
    if not file_ref:
        return
    try:
        await media_store.remove(file_ref)
    except OSError as e:
        sentry_sdk.capture_exception(e)
        logger.exception("Could not remove media file %s", file_ref)
