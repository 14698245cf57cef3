"""
OAuth Client Administration

- GET    /api/v1/oauth-clients       - List registered clients
- POST   /api/v1/oauth-clients       - Register a client; the secret is only returned here
- DELETE /api/v1/oauth-clients/{id}  - Remove a client and every token issued to it

All three require the admin role.
"""

import logging
from typing import List, Optional

import pydantic
from aiohttp import web
from pydantic import BaseModel

from social.tube.pod.app.config import DatabaseSessionMakerAppKey
from social.tube.pod.app.handlers.helpers import guard, is_admin
from social.tube.pod.errors import ValidationError
from social.tube.pod.model.base import isoformat
from social.tube.pod.model.clients import DEFAULT_GRANT_TYPES, Client
from social.tube.pod.oauth import clients
from social.tube.pod.oauth.tokens import GRANT_TYPES

logger = logging.getLogger(__name__)


class ClientRegistration(BaseModel):
    name: str = ""
    grant_types: Optional[List[str]] = None


def client_json(client: Client):
    return {
        "client_id": client.client_id,
        "name": client.name,
        "grant_types": client.grant_type_list,
        "createdDate": isoformat(client.created_at),
    }


async def handle_clients_list(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]

    async with database_session_maker() as database_session:
        await guard(database_session, request, is_admin)
        registered = await clients.list_clients(database_session)

    return web.json_response({"data": [client_json(client) for client in registered]})


async def handle_clients_create(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request, is_admin)

        body = await request.read()
        try:
            payload = (
                ClientRegistration.model_validate_json(body)
                if body.strip()
                else ClientRegistration()
            )
        except pydantic.ValidationError:
            raise ValidationError.invalid_payload()

        if payload.grant_types is None:
            grant_types = DEFAULT_GRANT_TYPES
        else:
            if not payload.grant_types or any(
                grant_type not in GRANT_TYPES for grant_type in payload.grant_types
            ):
                raise ValidationError.invalid_payload("grant_types")
            grant_types = " ".join(payload.grant_types)

        client_id = clients.generate_client_id()
        client_secret = clients.generate_client_secret()
        client = await clients.register(
            database_session,
            client_id,
            client_secret,
            name=payload.name,
            grant_types=grant_types,
        )

    logger.info("User %s registered client %s", context.user_id, client_id)
    return web.json_response(
        {**client_json(client), "client_secret": client_secret}
    )


async def handle_clients_delete(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    client_id = request.match_info["client_id"]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request, is_admin)
        await clients.remove(database_session, client_id)

    logger.info("User %s removed client %s", context.user_id, client_id)
    return web.Response(status=204)
