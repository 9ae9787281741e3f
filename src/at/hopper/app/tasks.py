import asyncio
import logging
from typing import NoReturn

from aiohttp import web
import sentry_sdk

from at.hopper.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ResolverAppKey,
)

logger = logging.getLogger(__name__)

HEALTH_TICK_INTERVAL = 30


async def tick_health_task(app: web.Application) -> NoReturn:
    """
    Tick the health gauge every 30 seconds, reducing the error score by 1 each time.

    Each tick also reports the error score and the number of entries held by the
    discovery and resolution caches.
    """

    logger.info("Starting health gauge task")

    health_gauge = app[HealthGaugeAppKey]
    metrics_client = app[MetricsClientAppKey]
    resolver = app[ResolverAppKey]
    while True:
        error_score = await health_gauge.tick()
        metrics_client.gauge("health.errors", error_score)

        try:
            discovery_size = await resolver.discovery_cache.backend.size()
            metrics_client.gauge(
                "cache.size", discovery_size, tag_dict={"cache": "discovery"}
            )

            resolution_size = await resolver.resolution_cache.size()
            metrics_client.gauge(
                "cache.size", resolution_size, tag_dict={"cache": "resolution"}
            )
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.exception("error reporting cache sizes")

        await asyncio.sleep(HEALTH_TICK_INTERVAL)
