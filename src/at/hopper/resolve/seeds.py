"""Built-in discovery documents.

Some widely used AT Protocol applications do not publish a discovery document. Their
templates are preloaded into the discovery cache at startup so they resolve without
an upstream request.
"""

from typing import Dict, List, Optional, Tuple

from at.hopper.model.discovery import DiscoveryDocument, Link
from at.hopper.resolve.protocol import ProtocolDescriptor

SEED_TEMPLATES: Dict[str, List[Tuple[str, Optional[str]]]] = {
    "bsky.app": [
        ("https://bsky.app/profile/{identity}", None),
        ("https://bsky.app/profile/{identity}/post/{rkey}", "app.bsky.feed.post"),
    ],
    "frontpage.fyi": [
        ("https://frontpage.fyi/post/{identity}/{rkey}", "fyi.unravel.frontpage.post"),
    ],
    "whtwnd.com": [
        ("https://whtwnd.com/{identity}/{rkey}", "com.whtwnd.blog.entry"),
    ],
}


def seed_link(
    protocol: ProtocolDescriptor, template: str, collection: Optional[str] = None
) -> Link:
    """Build a link in the given protocol, optionally scoped to a collection."""
    properties = {} if collection is None else {protocol.scope_key: collection}
    return Link(
        relation=protocol.link_relation, template=template, properties=properties
    )


def seed_documents(protocol: ProtocolDescriptor) -> Dict[str, DiscoveryDocument]:
    return {
        hostname: DiscoveryDocument(
            links=[
                seed_link(protocol, template, collection)
                for template, collection in templates
            ]
        )
        for hostname, templates in SEED_TEMPLATES.items()
    }
