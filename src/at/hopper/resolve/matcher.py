"""URL template matching.

Selects the first link of a discovery document that applies to an AT-URI and expands
its template.
"""

import logging
from typing import Optional

from at.hopper.model.aturi import AtUri
from at.hopper.model.discovery import DiscoveryDocument
from at.hopper.resolve.protocol import DEFAULT_SCOPE, ProtocolDescriptor

logger = logging.getLogger(__name__)


def expand_template(template: str, aturi: AtUri) -> str:
    """Substitute AT-URI fields into a template.

    Replacement is literal and unescaped; placeholders for absent fields are left as is.
    """
    result = template.replace("{identity}", aturi.identity)
    if aturi.collection is not None:
        result = result.replace("{collection}", aturi.collection)
    if aturi.rkey is not None:
        result = result.replace("{rkey}", aturi.rkey)
    return result


def match_template(
    document: DiscoveryDocument,
    server: str,
    aturi: AtUri,
    protocol: ProtocolDescriptor,
) -> Optional[str]:
    """Find and expand the link template a server declares for an AT-URI.

    A link applies when its relation is the protocol's link relation, it has a
    template hosted on the requesting server, and its collection scope (default
    "identity") equals the AT-URI collection (default "identity").

    Args:
        document: Discovery document published by the server
        server: Hostname of the server that published the document
        aturi: Parsed AT-URI
        protocol: Discovery protocol the document follows

    Returns:
        Expanded destination URL of the first applicable link, None if no link applies
    """
    prefix = f"https://{server}"
    matching_scope = aturi.collection if aturi.collection is not None else DEFAULT_SCOPE

    for link in document.links:
        if link.relation != protocol.link_relation:
            continue

        if link.template is None:
            logger.debug("link template is empty")
            continue

        if not link.template.startswith(prefix):
            logger.debug("link template does not match prefix %s", prefix)
            continue

        if link.properties.get(protocol.scope_key, DEFAULT_SCOPE) != matching_scope:
            continue

        return expand_template(link.template, aturi)

    return None
