"""
Configuration Module for Hopper

This module defines the configuration system for the Hopper AT-URI resolution service,
using Pydantic for settings validation and dependency injection through AppKeys.

The Settings class is loaded from environment variables with defaults suitable for
development. All application components access settings and shared resources through
typed AppKeys, so the two resolution caches are created once at startup and handed to
every request explicitly.

Key configuration areas include:
- Service identification and networking
- Discovery protocol and default candidate servers
- Cache backend, capacities and TTLs
- Upstream HTTP timeouts
- Monitoring and error reporting
"""

import asyncio
import logging
from typing import Annotated, Final, List, Literal, Optional

from aiohttp import ClientSession, web
from pydantic import AliasChoices, Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, NoDecode
from redis import asyncio as redis

from at.hopper.metrics import MetricsClient
from at.hopper.model.health import HealthGauge
from at.hopper.resolve.resolver import DEFAULT_SERVERS, Resolver

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the Hopper service.

    Environment variables are automatically mapped to settings fields. For example,
    the Redis connection string can be set with either REDIS_DSN or REDIS_URL.
    """

    debug: bool = False
    """
    Enable debug mode for verbose request tracing and detailed error responses.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=8080)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    external_hostname: str = "hopper.at"
    """
    Public hostname for the service.
    Set with EXTERNAL_HOSTNAME environment variable.
    """

    user_agent: str = "hopper (+https://hopper.at/)"
    """User-Agent header sent with discovery document requests."""

    discovery_protocol: Literal["host-meta", "webfinger"] = "host-meta"
    """
    Discovery protocol used to query candidate servers.
    Set with DISCOVERY_PROTOCOL environment variable.
    """

    default_servers: Annotated[List[str], NoDecode] = DEFAULT_SERVERS
    """
    Candidate servers consulted after any servers named in the request.
    Set with DEFAULT_SERVERS environment variable as comma-separated values.
    """

    seed_discovery_documents: bool = True
    """Preload built-in discovery documents for applications that do not publish one."""

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    cache_backend: Literal["memory", "redis"] = "memory"
    """
    Storage for the discovery and resolution caches.
    Set with CACHE_BACKEND environment variable.
    """

    redis_dsn: RedisDsn = Field(
        "redis://valkey:6379/2",
        validation_alias=AliasChoices("redis_dsn", "redis_url"),
    )  # type: ignore
    """
    Redis connection string, used when CACHE_BACKEND=redis.
    Set with REDIS_DSN or REDIS_URL environment variables.
    """

    discovery_cache_capacity: int = Field(default=1024 * 20, gt=0)
    resolution_cache_capacity: int = Field(default=1024 * 20, gt=0)

    discovery_not_found_ttl: int = Field(default=60 * 10, gt=0)
    """Seconds a failed discovery document fetch is remembered."""

    resolution_found_ttl: int = Field(default=60 * 30, gt=0)
    """Seconds a successful resolution is remembered."""

    resolution_not_found_ttl: int = Field(default=60 * 10, gt=0)
    """Seconds a failed resolution is remembered."""

    http_connect_timeout: float = 1.0
    http_read_timeout: float = 1.0
    http_total_timeout: float = 3.0

    metrics_backend: Literal["telegraf", "noop"] = "telegraf"
    """
    Metrics backend. Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    statsd_prefix: str = "hopper"
    """
    Prefix for all StatsD metrics from this service.
    Set with STATSD_PREFIX environment variable.
    """

    @field_validator("default_servers", mode="before")
    @classmethod
    def decode_default_servers(cls, v) -> List[str]:
        """
        Accept either a list of hostnames or a comma-separated string.

        Blank entries are dropped and surrounding whitespace is removed.
        """
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, list):
            return [str(server).strip() for server in v if str(server).strip()]
        raise ValueError("default_servers must be a list or a comma-separated string")


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

RedisClientAppKey: Final = web.AppKey("redis_client", redis.Redis)
"""AppKey for accessing the Redis client, only set when CACHE_BACKEND=redis"""

ResolverAppKey: Final = web.AppKey("resolver", Resolver)
"""AppKey for accessing the AT-URI resolver and its caches"""

HealthGaugeAppKey: Final = web.AppKey("health_gauge", HealthGauge)
"""AppKey for accessing the health monitoring gauge"""

TickHealthTaskAppKey: Final = web.AppKey("tick_health_task", asyncio.Task[None])
"""AppKey for the background task that monitors service health"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for the metrics client"""
