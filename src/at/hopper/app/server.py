import asyncio
import contextlib
import logging
from time import time
from typing import Any, Optional

import aiohttp
from aiohttp import web
import redis.asyncio as redis
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from at.hopper.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    RedisClientAppKey,
    ResolverAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TickHealthTaskAppKey,
)
from at.hopper.app.handlers.index import handle_index
from at.hopper.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
    handle_internal_resolve,
)
from at.hopper.metrics import create_metrics_client
from at.hopper.app.tasks import tick_health_task
from at.hopper.model.health import HealthGauge
from at.hopper.resolve.cache import (
    CacheBackend,
    DiscoveryExpiry,
    MemoryCache,
    RedisCache,
    ResolutionExpiry,
    discovery_entry_adapter,
    resolution_entry_adapter,
)
from at.hopper.resolve.protocol import protocol_by_name
from at.hopper.resolve.resolver import DiscoveryCache, Resolver
from at.hopper.resolve.seeds import seed_documents

logger = logging.getLogger(__name__)


def build_caches(
    settings: Settings, redis_client: Optional[Any] = None
) -> tuple[CacheBackend[Any], CacheBackend[Any]]:
    """Create the discovery and resolution cache backends selected by the settings."""
    discovery_expiry = DiscoveryExpiry(settings.discovery_not_found_ttl)
    resolution_expiry = ResolutionExpiry(
        settings.resolution_found_ttl, settings.resolution_not_found_ttl
    )

    if settings.cache_backend == "redis":
        if redis_client is None:
            raise ValueError("redis cache backend requires a redis client")
        return (
            RedisCache(
                redis_client,
                f"hopper:discovery:{settings.discovery_protocol}",
                discovery_entry_adapter,
                discovery_expiry,
                capacity=settings.discovery_cache_capacity,
            ),
            RedisCache(
                redis_client,
                f"hopper:resolution:{settings.discovery_protocol}",
                resolution_entry_adapter,
                resolution_expiry,
                capacity=settings.resolution_cache_capacity,
            ),
        )

    return (
        MemoryCache(discovery_expiry, capacity=settings.discovery_cache_capacity),
        MemoryCache(resolution_expiry, capacity=settings.resolution_cache_capacity),
    )


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

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

    timeout = aiohttp.ClientTimeout(
        total=settings.http_total_timeout,
        sock_connect=settings.http_connect_timeout,
        sock_read=settings.http_read_timeout,
    )
    app[SessionAppKey] = aiohttp.ClientSession(
        timeout=timeout,
        headers={"User-Agent": settings.user_agent},
        trace_configs=[trace_config],
    )

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        prefix=settings.statsd_prefix,
        debug=settings.debug,
    )
    await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    redis_client = None
    if settings.cache_backend == "redis":
        redis_client = redis.Redis.from_url(str(settings.redis_dsn))
        app[RedisClientAppKey] = redis_client

    discovery_backend, resolution_backend = build_caches(settings, redis_client)

    protocol = protocol_by_name(settings.discovery_protocol)
    discovery_cache = DiscoveryCache(
        discovery_backend, app[SessionAppKey], protocol, metrics_client
    )
    if settings.seed_discovery_documents:
        for hostname, document in seed_documents(protocol).items():
            logger.info("Seeding discovery document for %s", hostname)
            await discovery_cache.preload(hostname, document)

    app[ResolverAppKey] = Resolver(discovery_cache, resolution_backend, metrics_client)

    logger.info("Startup complete")

    app[TickHealthTaskAppKey] = asyncio.create_task(tick_health_task(app))

    yield

    logger.info("Shutting down background tasks")

    app[TickHealthTaskAppKey].cancel()

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[TickHealthTaskAppKey]

    await app[SessionAppKey].close()
    if redis_client is not None:
        await redis_client.aclose()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception("Unhandled error handling %s %s", request.method, request.path)
        sentry_sdk.capture_exception(e)
        await request.app[HealthGaugeAppKey].record_error()
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

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
        response_status_code = 500
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
            send_default_pii=True,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(middlewares=[statsd_middleware, sentry_middleware])

    app[SettingsAppKey] = settings
    app[HealthGaugeAppKey] = HealthGauge()

    app.add_routes([web.get("/", handle_index)])

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
            web.get("/internal/api/resolve", handle_internal_resolve),
        ]
    )

    app.cleanup_ctx.append(background_tasks)

    return app
