"""
OAuth Handlers

- POST /api/v1/users/token - Token endpoint (password and refresh_token grants)
- POST /api/v1/users/revoke-token - Revoke the presented access token (logout)

The token endpoint accepts ``application/x-www-form-urlencoded`` bodies as RFC 6749
requires, and JSON bodies for convenience. Client credentials travel in the body
(``client_id`` / ``client_secret``). Failures answer 400 with ``{"error": "invalid_client"}``
or ``{"error": "invalid_grant"}``.
"""

import json
import logging
from typing import Dict

from aiohttp import web

from social.tube.pod.app.config import (
    DatabaseSessionMakerAppKey,
    MetricsClientAppKey,
    SettingsAppKey,
)
from social.tube.pod.app.handlers.helpers import guard
from social.tube.pod.errors import GrantError, PodAccessError
from social.tube.pod.oauth import tokens

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


async def read_token_request(request: web.Request) -> Dict[str, str]:
    if request.content_type == "application/json":
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise GrantError.missing_parameter("grant_type")
        if not isinstance(data, dict):
            raise GrantError.missing_parameter("grant_type")
        return {str(k): str(v) for k, v in data.items() if v is not None}

    form = await request.post()
    return {str(k): str(v) for k, v in form.items()}


async def handle_token(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    database_session_maker = request.app[DatabaseSessionMakerAppKey]
    metrics_client = request.app[MetricsClientAppKey]

    params = await read_token_request(request)
    grant_type = params.get("grant_type")

    try:
        async with database_session_maker() as database_session:
            if grant_type == tokens.GRANT_PASSWORD:
                token = await tokens.issue_by_password(
                    database_session,
                    params.get("client_id"),
                    params.get("client_secret"),
                    params.get("username"),
                    params.get("password"),
                    access_token_expiry=settings.access_token_expiry,
                    refresh_token_expiry=settings.refresh_token_expiry,
                )
            elif grant_type == tokens.GRANT_REFRESH_TOKEN:
                token = await tokens.issue_by_refresh(
                    database_session,
                    params.get("client_id"),
                    params.get("client_secret"),
                    params.get("refresh_token"),
                    access_token_expiry=settings.access_token_expiry,
                    refresh_token_expiry=settings.refresh_token_expiry,
                )
            else:
                raise GrantError.unsupported_grant_type(grant_type)
    except PodAccessError as e:
        logger.info("Token request rejected: %s", e)
        metrics_client.increment(
            "token.rejected",
            1,
            tag_dict={"grant_type": grant_type or "none", "error": e.error},
        )
        raise

    metrics_client.increment("token.issued", 1, tag_dict={"grant_type": grant_type})

    return web.json_response(
        {
            "access_token": token.access_token,
            "token_type": "Bearer",
            "expires_in": settings.access_token_expiry,
            "refresh_token": token.refresh_token,
        },
        headers=NO_STORE_HEADERS,
    )


async def handle_revoke_token(request: web.Request) -> web.Response:
    database_session_maker = request.app[DatabaseSessionMakerAppKey]

    async with database_session_maker() as database_session:
        context = await guard(database_session, request)
        await tokens.revoke(database_session, context.access_token)

    logger.info("User %s revoked a token", context.user_id)
    return web.Response(status=200)
