import logging
from typing import Iterable, List

from aiohttp import web

from at.hopper.app.config import ResolverAppKey, SettingsAppKey
from at.hopper.model.aturi import parse_aturi
from at.hopper.resolve.errors import (
    AllServersExhaustedError,
    HopperError,
    InvalidIdentifierError,
    expand_error,
)

logger = logging.getLogger(__name__)


def parse_servers(value: str, default_servers: Iterable[str]) -> List[str]:
    """Build the ordered candidate server list for a request.

    Servers named in the comma-separated value come first, followed by the default
    servers. Entries are trimmed, blanks dropped and duplicates removed, keeping the
    first occurrence.
    """
    servers = [server.strip() for server in value.split(",")]
    servers.extend(default_servers)
    return list(dict.fromkeys(server for server in servers if server))


def has_control_characters(value: str) -> bool:
    """Check for ASCII control characters, which cannot be sent in a header."""
    return any(ord(c) < 0x20 or ord(c) == 0x7F for c in value)


def error_response(error: HopperError, status: int, **extra) -> web.Response:
    code, partial = expand_error(str(error))
    message = partial.removeprefix(code).strip()
    return web.json_response(
        {"error": code, "message": message, **extra},
        status=status,
    )


async def handle_index(request: web.Request):
    """Redirect to the page that renders an AT-URI.

    Query parameters:
        aturi: The AT-URI to resolve
        server: Optional comma-separated candidate servers tried before the defaults

    htmx requests receive an ``HX-Redirect`` header instead of a redirect status.
    """
    settings = request.app[SettingsAppKey]

    raw_aturi = request.query.get("aturi")
    if raw_aturi is None:
        return web.json_response(
            {
                "service": settings.external_hostname,
                "usage": "/?aturi=at://{identity}[/{collection}[/{rkey}]]&server={hostname}",
                "default_servers": settings.default_servers,
            }
        )

    aturi = parse_aturi(raw_aturi)
    if aturi is None:
        logger.debug("invalid aturi %s", raw_aturi)
        return error_response(InvalidIdentifierError(), 400, aturi=raw_aturi)

    servers = parse_servers(request.query.get("server", ""), settings.default_servers)

    resolver = request.app[ResolverAppKey]
    try:
        destination = await resolver.resolve(raw_aturi, aturi, servers)
    except AllServersExhaustedError as e:
        logger.debug("unable to resolve %s: %s", raw_aturi, e)
        return error_response(e, 404, aturi=raw_aturi)

    if has_control_characters(destination):
        logger.warning("refusing destination with control characters for %r", raw_aturi)
        return error_response(AllServersExhaustedError(), 404, aturi=raw_aturi)

    if request.headers.get("HX-Request") == "true":
        return web.Response(status=200, headers={"HX-Redirect": destination})

    raise web.HTTPFound(location=destination)
