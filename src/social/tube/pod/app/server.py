import asyncio
import contextlib
import logging
from time import time
from typing import Optional

import aiohttp
from aiohttp import web
from sqlalchemy.ext.asyncio import (
    async_sessionmaker,
    AsyncSession,
)
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from social.tube.pod.app.config import (
    DatabaseAppKey,
    DatabaseSessionMakerAppKey,
    HealthGaugeAppKey,
    MediaStoreAppKey,
    MetricsClientAppKey,
    PeerHandshakeAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TickHealthTaskAppKey,
    TokenSweepTaskAppKey,
)
from social.tube.pod.app.handlers.clients import (
    handle_clients_create,
    handle_clients_delete,
    handle_clients_list,
)
from social.tube.pod.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
)
from social.tube.pod.app.handlers.oauth import handle_revoke_token, handle_token
from social.tube.pod.app.handlers.pods import (
    handle_pods_list,
    handle_pods_make_friends,
    handle_pods_quit_friends,
)
from social.tube.pod.app.handlers.users import (
    handle_users_create,
    handle_users_delete,
    handle_users_get,
    handle_users_list,
    handle_users_me,
    handle_users_update,
)
from social.tube.pod.app.handlers.videos import (
    handle_videos_delete,
    handle_videos_get,
    handle_videos_list,
    handle_videos_upload,
)
from social.tube.pod.app.health import HealthGauge
from social.tube.pod.app.metrics import create_metrics_client
from social.tube.pod.app.tasks import tick_health_task, token_sweep_task
from social.tube.pod.errors import Forbidden, NotFound, PodAccessError, Unauthenticated
from social.tube.pod.federation.handshake import HttpPeerHandshake
from social.tube.pod.library.media import LocalMediaStore
from social.tube.pod.model import Base
from social.tube.pod.model.base import create_database_engine

logger = logging.getLogger(__name__)


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    engine = create_database_engine(settings.database_dsn)
    app[DatabaseAppKey] = engine
    database_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    app[DatabaseSessionMakerAppKey] = database_session

    if settings.create_schema:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting request: %s", params)

        async def on_request_end(session, trace_config_ctx, params):
            logging.info("Ending request: %s", params)

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(trace_configs=[trace_config])

    # Tests install their own metrics client, media store and peer transport before
    # startup.
    if MetricsClientAppKey not in app:
        metrics_client = create_metrics_client(
            settings.metrics_backend,
            host=settings.statsd_host,
            port=settings.statsd_port,
            prefix=settings.statsd_prefix,
            debug=settings.debug,
        )
        await metrics_client.connect()
        app[MetricsClientAppKey] = metrics_client

    if MediaStoreAppKey not in app:
        app[MediaStoreAppKey] = LocalMediaStore(settings.uploads_dir)
    if PeerHandshakeAppKey not in app:
        app[PeerHandshakeAppKey] = HttpPeerHandshake(
            app[SessionAppKey],
            settings.external_hostname,
            timeout=settings.federation_handshake_timeout,
        )

    logger.info("Startup complete")

    app[TickHealthTaskAppKey] = asyncio.create_task(tick_health_task(app))
    app[TokenSweepTaskAppKey] = asyncio.create_task(token_sweep_task(app))

    yield

    logger.info("Shutting down background tasks")

    app[TickHealthTaskAppKey].cancel()
    app[TokenSweepTaskAppKey].cancel()

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[TickHealthTaskAppKey]

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[TokenSweepTaskAppKey]

    await app[DatabaseAppKey].dispose()
    await app[SessionAppKey].close()
    await app[MetricsClientAppKey].close()


def access_error_response(error: PodAccessError) -> web.Response:
    """
    Render an expected access failure.

    401, 403 and 404 carry no body so that a refusal does not describe the resource it
    protects; the remaining failures name their error code.
    """
    if isinstance(error, Unauthenticated):
        return web.Response(status=error.status, headers={"WWW-Authenticate": "Bearer"})
    if isinstance(error, (Forbidden, NotFound)):
        return web.Response(status=error.status)
    return web.json_response({"error": error.error}, status=error.status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except PodAccessError as e:
        logger.debug("%s %s refused: %s", request.method, request.path, e)
        return access_error_response(e)
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        logger.exception("Unhandled error in %s %s", request.method, request.path)
        await request.app[HealthGaugeAppKey].record_failure()

        body = {"error": "Internal Server Error"}
        if request.app[SettingsAppKey].debug:
            body["error_type"] = type(e).__name__
        return web.json_response(body, status=500)


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    # Route templates keep ids out of the tag values.
    resource = request.match_info.route.resource
    request_path = resource.canonical if resource is not None else request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            "server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(middlewares=[statsd_middleware, error_middleware])

    app[SettingsAppKey] = settings
    app[HealthGaugeAppKey] = HealthGauge()

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
        ]
    )

    app.add_routes(
        [
            web.post("/api/v1/users/token", handle_token),
            web.post("/api/v1/users/revoke-token", handle_revoke_token),
            web.post("/api/v1/users", handle_users_create),
            web.get("/api/v1/users", handle_users_list),
            web.get("/api/v1/users/me", handle_users_me),
            web.get(r"/api/v1/users/{user_id:\d+}", handle_users_get),
            web.put(r"/api/v1/users/{user_id:\d+}", handle_users_update),
            web.delete(r"/api/v1/users/{user_id:\d+}", handle_users_delete),
        ]
    )

    app.add_routes(
        [
            web.post("/api/v1/videos", handle_videos_upload),
            web.get("/api/v1/videos", handle_videos_list),
            web.get("/api/v1/videos/{video_id}", handle_videos_get),
            web.delete("/api/v1/videos/{video_id}", handle_videos_delete),
        ]
    )

    app.add_routes(
        [
            web.post("/api/v1/pods/makefriends", handle_pods_make_friends),
            web.post("/api/v1/pods/quitfriends", handle_pods_quit_friends),
            web.get("/api/v1/pods", handle_pods_list),
        ]
    )

    app.add_routes(
        [
            web.get("/api/v1/oauth-clients", handle_clients_list),
            web.post("/api/v1/oauth-clients", handle_clients_create),
            web.delete("/api/v1/oauth-clients/{client_id}", handle_clients_delete),
        ]
    )

    app.cleanup_ctx.append(background_tasks)

    return app
