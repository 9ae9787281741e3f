import logging
from typing import Any, Dict, List

from aiohttp import web

from at.hopper.app.config import HealthGaugeAppKey, ResolverAppKey, SettingsAppKey
from at.hopper.app.handlers.index import parse_servers
from at.hopper.model.aturi import parse_aturi
from at.hopper.resolve.errors import AllServersExhaustedError, InvalidIdentifierError

logger = logging.getLogger(__name__)


async def handle_internal_ready(request: web.Request):
    health_gauge = request.app[HealthGaugeAppKey]
    if await health_gauge.is_healthy():
        return web.Response(status=200)
    return web.Response(status=503)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)


async def handle_internal_resolve(request: web.Request):
    """Resolve every ``aturi`` query value and report each outcome as JSON.

    Unlike the index handler this never redirects, which makes it suitable for
    checking how a server's discovery document is interpreted.
    """
    raw_aturis = request.query.getall("aturi", [])
    if len(raw_aturis) == 0:
        return web.json_response([])

    settings = request.app[SettingsAppKey]
    resolver = request.app[ResolverAppKey]
    servers = parse_servers(request.query.get("server", ""), settings.default_servers)

    results: List[Dict[str, Any]] = []
    for raw_aturi in raw_aturis:
        result: Dict[str, Any] = {"aturi": raw_aturi}
        aturi = parse_aturi(raw_aturi)
        if aturi is None:
            result["error"] = InvalidIdentifierError().code
            results.append(result)
            continue
        try:
            result["destination"] = await resolver.resolve(raw_aturi, aturi, servers)
        except AllServersExhaustedError as e:
            result["error"] = e.code
        results.append(result)
    return web.json_response({"servers": servers, "results": results})
