import asyncio
import logging
from time import time
from typing import NoReturn

from aiohttp import web
import sentry_sdk

from social.tube.pod.app.config import (
    DatabaseSessionMakerAppKey,
    HealthGaugeAppKey,
    MetricsClientAppKey,
    SettingsAppKey,
)
from social.tube.pod.oauth.tokens import purge_expired

logger = logging.getLogger(__name__)


async def tick_health_task(app: web.Application) -> NoReturn:
    """
    Tick the health gauge every 30 seconds, reducing the failure count by 1 each time.
    """

    logger.info("Starting health gauge task")

    health_gauge = app[HealthGaugeAppKey]
    while True:
        await health_gauge.tick()
        await asyncio.sleep(30)


async def token_sweep_task(app: web.Application) -> NoReturn:
    """
    Background process that deletes tokens whose refresh window has closed or that were
    revoked.

    Purged tokens could no longer authenticate anything, so the sweep only bounds the
    size of the token table. A failed sweep is reported and retried on the next interval.
    """
    logger.info("Starting token sweep task")

    settings = app[SettingsAppKey]
    database_session_maker = app[DatabaseSessionMakerAppKey]
    metrics_client = app[MetricsClientAppKey]
    health_gauge = app[HealthGaugeAppKey]

    while True:
        await asyncio.sleep(settings.token_sweep_interval)

        start_time = time()
        try:
            async with database_session_maker() as database_session:
                purged = await purge_expired(database_session)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.exception("Token sweep failed")
            await health_gauge.record_failure()
            metrics_client.increment("task.token_sweep.exception", 1)
            continue

        metrics_client.gauge("task.token_sweep.purged", purged)
        metrics_client.timer("task.token_sweep.time", time() - start_time)
        if purged:
            logger.info("Purged %d expired tokens", purged)
