"""Discovery document retrieval.

Fetches a server's discovery document over HTTPS and decodes it into a
DiscoveryDocument. A single attempt is made per call; caching is the caller's
responsibility.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp import ClientSession
from pydantic import BaseModel, Field, ValidationError
import sentry_sdk

from at.hopper.model.discovery import DiscoveryDocument, Link
from at.hopper.resolve.errors import (
    FetchDecodeError,
    FetchSubjectMismatchError,
    FetchTransportError,
)
from at.hopper.resolve.protocol import ProtocolDescriptor

logger = logging.getLogger(__name__)


class RawDocument(BaseModel):
    """Wire shape shared by both discovery protocols.

    Links are kept as raw mappings until the protocol's template field is known.
    """

    subject: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)
    links: List[Dict[str, Any]] = Field(default_factory=list)


def decode_document(
    payload: Any, hostname: str, protocol: ProtocolDescriptor
) -> DiscoveryDocument:
    """Decode a JSON payload into a discovery document.

    Args:
        payload: Decoded JSON body
        hostname: Server the document was fetched from
        protocol: Discovery protocol the document follows

    Returns:
        DiscoveryDocument with links in document order

    Raises:
        FetchDecodeError: If the payload does not fit the document shape
        FetchSubjectMismatchError: If the protocol checks subjects and it differs
    """
    try:
        raw = RawDocument.model_validate(payload)
        links = [
            Link(
                relation=raw_link.get("rel"),
                template=raw_link.get(protocol.template_field),
                properties=raw_link.get("properties", {}),
            )
            for raw_link in raw.links
        ]
    except ValidationError as e:
        raise FetchDecodeError(f"{hostname}: {e}") from e

    if protocol.check_subject:
        if raw.subject is None:
            raise FetchDecodeError(f"{hostname}: missing subject")
        if raw.subject != protocol.subject(hostname):
            raise FetchSubjectMismatchError(hostname)

    return DiscoveryDocument(properties=raw.properties, links=links)


async def fetch_document(
    session: ClientSession, hostname: str, protocol: ProtocolDescriptor
) -> DiscoveryDocument:
    """Fetch and decode the discovery document published by a server.

    Timeouts are taken from the session; exceeding one is a transport error.

    Args:
        session: HTTP client session
        hostname: Server to query
        protocol: Discovery protocol to use

    Returns:
        DiscoveryDocument published by the server

    Raises:
        FetchTransportError: On connection failure, timeout or non-2xx status
        FetchDecodeError: On malformed JSON or an unexpected document shape
        FetchSubjectMismatchError: If the document subject does not echo the server
    """
    url = protocol.discovery_url(hostname)
    try:
        async with session.get(url) as resp:
            if resp.status < 200 or resp.status >= 300:
                raise FetchTransportError(f"{hostname}: status {resp.status}")
            try:
                payload = await resp.json(content_type=None)
            except ValueError as e:
                raise FetchDecodeError(f"{hostname}: {e}") from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("discovery request to %s failed: %s", url, e)
        sentry_sdk.capture_exception(e)
        raise FetchTransportError(f"{hostname}: {type(e).__name__}") from e

    return decode_document(payload, hostname, protocol)
