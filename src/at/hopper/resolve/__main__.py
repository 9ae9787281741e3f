from typing import List
import argparse
import aiohttp
import asyncio
import logging

logger = logging.getLogger(__name__)

from at.hopper.model.aturi import parse_aturi
from at.hopper.resolve.cache import new_discovery_cache, new_resolution_cache
from at.hopper.resolve.errors import AllServersExhaustedError
from at.hopper.resolve.protocol import PROTOCOLS, protocol_by_name
from at.hopper.resolve.resolver import DEFAULT_SERVERS, DiscoveryCache, Resolver
from at.hopper.resolve.seeds import seed_documents


async def realMain() -> None:
    parser = argparse.ArgumentParser(prog="resolve", description="Resolve AT-URIs")
    parser.add_argument("aturi", nargs="+", help="The AT-URI(s) to resolve.")
    parser.add_argument(
        "--server",
        action="append",
        default=[],
        help="A candidate server consulted before the default servers. May be repeated.",
    )
    parser.add_argument(
        "--protocol",
        default="host-meta",
        choices=sorted(PROTOCOLS),
        help="The discovery protocol to use.",
    )
    parser.add_argument(
        "--no-seeds",
        action="store_true",
        help="Do not preload the built-in discovery documents.",
    )

    args = vars(parser.parse_args())

    aturis: List[str] = args.get("aturi", [])
    servers: List[str] = list(dict.fromkeys(args.get("server", []) + DEFAULT_SERVERS))
    protocol = protocol_by_name(args.get("protocol", "host-meta"))

    timeout = aiohttp.ClientTimeout(total=3, sock_connect=1, sock_read=1)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        discovery_cache = DiscoveryCache(new_discovery_cache(), session, protocol)
        if not args.get("no_seeds"):
            for hostname, document in seed_documents(protocol).items():
                await discovery_cache.preload(hostname, document)
        resolver = Resolver(discovery_cache, new_resolution_cache())

        for raw in aturis:
            aturi = parse_aturi(raw)
            if aturi is None:
                print(f"invalid {raw}")
                continue
            try:
                destination = await resolver.resolve(raw, aturi, servers)
                print(f"resolved {raw} {destination}")
            except AllServersExhaustedError as e:
                print(f"unresolved {raw} {e}")
            except Exception:
                logging.exception("Exception resolving aturi %s", raw)


def main() -> None:
    asyncio.run(realMain())


if __name__ == "__main__":
    main()
