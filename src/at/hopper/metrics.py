"""
Metrics Abstraction Layer for Hopper

This module provides a small metrics interface so the resolution engine can record
counters, gauges and timings without depending on a particular backend.

Key Components:
- MetricsClient: Abstract interface for all metrics operations
- TelegrafCompatibilityClient: Wrapper around aio_statsd's TelegrafStatsdClient
- NoOpMetricsClient: No-operation client for disabled metrics and tests
- create_metrics_client: Factory function for backend selection

Metric names are given without a prefix; the Telegraf client prepends the configured
service prefix (``hopper`` by default).
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from aio_statsd import TelegrafStatsdClient

logger = logging.getLogger(__name__)


class MetricsClient(ABC):
    """
    Abstract metrics client interface.

    All implementations support counters, gauges and timers. Tags follow the
    StatsD-style tag dictionary used by TelegrafStatsdClient.
    """

    @abstractmethod
    def increment(
        self,
        name: str,
        value: Union[int, float] = 1,
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Increment a counter metric by the specified value.

        Args:
            name: Metric name (e.g., 'server.request.count')
            value: Amount to increment by (default: 1)
            tag_dict: Optional tags for metric dimensions
        """
        pass

    @abstractmethod
    def gauge(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Set a gauge metric to the specified value."""
        pass

    @abstractmethod
    def timer(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record a timing measurement.

        Args:
            name: Metric name (e.g., 'server.request.time')
            value: Duration in seconds
            tag_dict: Optional tags for metric dimensions
        """
        pass

    async def connect(self) -> None:
        """Open any network resources needed before the first metric is sent."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the metrics client and flush any pending metrics."""
        pass


class TelegrafCompatibilityClient(MetricsClient):
    """
    MetricsClient delegating to a TelegrafStatsdClient.
    """

    def __init__(self, telegraf_client: Any, prefix: str = "hopper"):
        self.client = telegraf_client
        self.prefix = prefix

    def _name(self, name: str) -> str:
        return f"{self.prefix}.{name}" if self.prefix else name

    def increment(
        self,
        name: str,
        value: Union[int, float] = 1,
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.client.increment(self._name(name), value, tag_dict=tag_dict or {})

    def gauge(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.client.gauge(self._name(name), value, tag_dict=tag_dict or {})

    def timer(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.client.timer(self._name(name), value, tag_dict=tag_dict or {})

    async def connect(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        try:
            await self.client.close()
        except Exception as e:
            logger.warning(f"Error closing Telegraf client: {e}")


class NoOpMetricsClient(MetricsClient):
    """
    No-operation metrics client.

    Used when metrics are disabled and as the default for components constructed
    without a metrics client, such as the command line resolver and tests.
    """

    def increment(
        self,
        name: str,
        value: Union[int, float] = 1,
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass

    def timer(
        self,
        name: str,
        value: Union[int, float],
        tag_dict: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass

    async def close(self) -> None:
        pass


def create_metrics_client(
    backend: str,
    host: str = "localhost",
    port: int = 8125,
    prefix: str = "hopper",
    telegraf_client: Optional[Any] = None,
    debug: bool = False,
) -> MetricsClient:
    """
    Create the metrics client for a backend type.

    Args:
        backend: Backend type ('telegraf' or 'noop')
        host: Telegraf/StatsD host
        port: Telegraf/StatsD port
        prefix: Prefix prepended to every metric name
        telegraf_client: Pre-configured TelegrafStatsdClient instance
        debug: Enable debug logging in the StatsD client

    Returns:
        MetricsClient: Configured metrics client instance

    Raises:
        ValueError: If backend type is invalid
    """
    backend = backend.lower()

    if backend == "telegraf":
        if telegraf_client is None:
            telegraf_client = TelegrafStatsdClient(host=host, port=port, debug=debug)
        return TelegrafCompatibilityClient(telegraf_client, prefix=prefix)

    elif backend == "noop":
        logger.info("Metrics collection disabled (no-op client)")
        return NoOpMetricsClient()

    raise ValueError(
        f"Invalid metrics backend: {backend}. Supported backends: 'telegraf', 'noop'"
    )
