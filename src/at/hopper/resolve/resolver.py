"""AT-URI resolution.

Resolves an AT-URI against an ordered list of candidate servers. Discovery documents
are memoized per server, and the outcome of a whole resolution is memoized per
(raw AT-URI, server list) pair, so repeated lookups are served without any upstream
request.
"""

import hashlib
import logging
from typing import Any, Optional, Sequence, Union

from aiohttp import ClientSession

from at.hopper.metrics import MetricsClient, NoOpMetricsClient
from at.hopper.model.aturi import AtUri
from at.hopper.model.discovery import DiscoveryDocument
from at.hopper.resolve.cache import (
    CacheBackend,
    DiscoveryFound,
    DiscoveryNotFound,
    ResolutionFound,
    ResolutionNotFound,
)
from at.hopper.resolve.discovery import fetch_document
from at.hopper.resolve.errors import AllServersExhaustedError, FetchError
from at.hopper.resolve.matcher import match_template
from at.hopper.resolve.protocol import HOST_META, ProtocolDescriptor

logger = logging.getLogger(__name__)

UNABLE_TO_RESOLVE = "unable to resolve at-uri"

DEFAULT_SERVERS = [
    "smokesignal.events",
    "frontpage.fyi",
    "whtwnd.com",
    "bsky.app",
]


def resolution_cache_key(raw_input: str, servers: Sequence[str]) -> str:
    """Deterministic cache key for a resolution.

    Hashes the raw AT-URI followed by every server in order into a 64-bit integer
    rendered in decimal.
    """
    hasher = hashlib.blake2b(digest_size=8)
    hasher.update(raw_input.encode("utf-8"))
    for server in servers:
        hasher.update(server.encode("utf-8"))
    return str(int.from_bytes(hasher.digest(), "big"))


class DiscoveryCache:
    """
    Cache-aside access to server discovery documents.

    Fetch failures are remembered as NotFound entries so a failing server is not
    queried again until the entry expires.
    """

    def __init__(
        self,
        backend: CacheBackend[Any],
        session: ClientSession,
        protocol: ProtocolDescriptor = HOST_META,
        metrics_client: Optional[MetricsClient] = None,
    ) -> None:
        self.backend = backend
        self.session = session
        self.protocol = protocol
        self.metrics_client = metrics_client or NoOpMetricsClient()

    async def preload(self, hostname: str, document: DiscoveryDocument) -> None:
        await self.backend.put(hostname, DiscoveryFound(document=document))

    async def lookup(self, hostname: str) -> Union[DiscoveryFound, DiscoveryNotFound]:
        """Return the cached discovery entry for a server, fetching it on a miss."""
        entry = await self.backend.get(hostname)
        if entry is not None:
            self.metrics_client.increment(
                "discovery.cache", 1, tag_dict={"result": "hit"}
            )
            return entry

        self.metrics_client.increment(
            "discovery.cache", 1, tag_dict={"result": "miss"}
        )

        try:
            document = await fetch_document(self.session, hostname, self.protocol)
            entry = DiscoveryFound(document=document)
        except FetchError as e:
            self.metrics_client.increment(
                "discovery.fetch.error",
                1,
                tag_dict={"error": type(e).__name__},
            )
            entry = DiscoveryNotFound(reason=str(e))

        await self.backend.put(hostname, entry)
        return entry


class Resolver:
    """
    Resolves AT-URIs to destination URLs.

    Both caches are passed in explicitly; the resolver holds no other state.
    """

    def __init__(
        self,
        discovery_cache: DiscoveryCache,
        resolution_cache: CacheBackend[Any],
        metrics_client: Optional[MetricsClient] = None,
    ) -> None:
        self.discovery_cache = discovery_cache
        self.resolution_cache = resolution_cache
        self.metrics_client = metrics_client or NoOpMetricsClient()

    @property
    def protocol(self) -> ProtocolDescriptor:
        return self.discovery_cache.protocol

    async def resolve(
        self, raw_input: str, aturi: AtUri, servers: Sequence[str]
    ) -> str:
        """Resolve an AT-URI to the destination URL of the first matching server.

        Args:
            raw_input: AT-URI exactly as received, used for the cache key
            aturi: Parsed AT-URI
            servers: Candidate server hostnames, tried in order

        Returns:
            Destination URL

        Raises:
            AllServersExhaustedError: If no server declares a template for the AT-URI,
                including when this outcome was remembered from an earlier request
        """
        cache_key = resolution_cache_key(raw_input, servers)

        cached = await self.resolution_cache.get(cache_key)
        if cached is not None:
            self.metrics_client.increment(
                "resolve.cache", 1, tag_dict={"result": "hit"}
            )
            if isinstance(cached, ResolutionFound):
                return cached.destination
            raise AllServersExhaustedError(cached.reason)

        self.metrics_client.increment(
            "resolve.cache", 1, tag_dict={"result": "miss"}
        )

        for server in servers:
            entry = await self.discovery_cache.lookup(server)
            if isinstance(entry, DiscoveryNotFound):
                logger.debug("skipping server %s: %s", server, entry.reason)
                continue

            destination = match_template(entry.document, server, aturi, self.protocol)
            if destination is None:
                logger.debug("server %s has no matching link for %s", server, raw_input)
                continue

            await self.resolution_cache.put(
                cache_key, ResolutionFound(destination=destination)
            )
            return destination

        error = AllServersExhaustedError(UNABLE_TO_RESOLVE)
        await self.resolution_cache.put(
            cache_key, ResolutionNotFound(reason=error.detail)
        )
        raise error
