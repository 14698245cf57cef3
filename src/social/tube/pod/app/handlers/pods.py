"""
Federation Handlers

- POST /api/v1/pods/makefriends  - Open relationships with peers ({"urls": [...]}, default KNOWN_PODS)
- POST /api/v1/pods/quitfriends  - Terminate relationships ({"urls": [...]}, default all live peers)
- GET  /api/v1/pods              - List relationships and their state

Both mutations require a valid access token. With FEDERATION_REQUIRES_ADMIN=true they
also require the admin role.
"""

import logging
from typing import List, Optional

import pydantic
from aiohttp import web
from pydantic import BaseModel

from social.tube.pod.app.config import (
    DatabaseSessionMakerAppKey,
    PeerHandshakeAppKey,
    SettingsAppKey,
)
from social.tube.pod.app.handlers.helpers import (
    Capability,
    guard,
    is_admin,
    is_authenticated,
)
from social.tube.pod.errors import ValidationError
from social.tube.pod.federation import gate

logger = logging.getLogger(__name__)


class PeerSelection(BaseModel):
    urls: Optional[List[str]] = None


def federation_capability(request: web.Request) -> Capability:
    if request.app[SettingsAppKey].federation_requires_admin:
        return is_admin
    return is_authenticated


async def read_peer_selection(request: web.Request) -> PeerSelection:
    body = await request.read()
    if not body.strip():
        return PeerSelection()
    try:
        return PeerSelection.model_validate_json(body)
    except pydantic.ValidationError:
        raise ValidationError.invalid_payload("urls")


async def handle_pods_make_friends(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    handshake = request.app[PeerHandshakeAppKey]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request, federation_capability(request))

        selection = await read_peer_selection(request)
        urls = selection.urls if selection.urls is not None else settings.known_pods
        if not urls:
            raise ValidationError.invalid_payload("no pods to befriend")

        logger.info("User %s makes friends with %s", context.user_id, urls)
        relationships = await gate.make_friends(database_session, handshake, urls)

    return web.json_response(
        {"data": [relationship.to_json() for relationship in relationships]}
    )


async def handle_pods_quit_friends(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    handshake = request.app[PeerHandshakeAppKey]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request, federation_capability(request))

        selection = await read_peer_selection(request)

        logger.info("User %s quits friends %s", context.user_id, selection.urls or "all")
        relationships = await gate.quit_friends(
            database_session, handshake, selection.urls
        )

    return web.json_response(
        {"data": [relationship.to_json() for relationship in relationships]}
    )


async def handle_pods_list(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]

    async with database_session_maker() as database_session:
        relationships = await gate.list_relationships(database_session)

    return web.json_response(
        {
            "total": len(relationships),
            "data": [relationship.to_json() for relationship in relationships],
        }
    )
