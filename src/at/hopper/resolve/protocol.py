"""Discovery protocol descriptors.

Both supported discovery protocols share one fetch and matching pipeline. They only
differ in where the document lives, which link relation and scope property they use,
the name of the field holding the URL template, and whether the document must echo
the requested subject.
"""

from typing import Dict, Final
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict

DEFAULT_SCOPE: Final = "identity"


class ProtocolDescriptor(BaseModel):
    """Parameters of a discovery protocol."""

    model_config = ConfigDict(frozen=True)

    name: str
    discovery_path: str
    link_relation: str
    scope_key: str
    template_field: str
    check_subject: bool = False

    def subject(self, hostname: str) -> str:
        return f"acct:{hostname}"

    def discovery_url(self, hostname: str) -> str:
        """Build the well-known document URL for a server.

        The path may reference ``{resource}``, the percent-encoded subject.
        """
        path = self.discovery_path.format(
            resource=quote(self.subject(hostname), safe="")
        )
        return f"https://{hostname}{path}"


HOST_META: Final = ProtocolDescriptor(
    name="host-meta",
    discovery_path="/.well-known/host-meta.json",
    link_relation="http://hopper.at/rel/link",
    scope_key="http://hopper.at/ns/collection",
    template_field="template",
)
"""Host-meta protocol, the canonical protocol of the service."""

WEBFINGER: Final = ProtocolDescriptor(
    name="webfinger",
    discovery_path="/.well-known/webfinger?resource={resource}",
    link_relation="https://hopper.at/spec/schema/1.0/link",
    scope_key="https://hopper.at/spec/schema/1.0/link#collection",
    template_field="href",
    check_subject=True,
)
"""Webfinger protocol, requires the document subject to echo ``acct:<hostname>``."""

PROTOCOLS: Final[Dict[str, ProtocolDescriptor]] = {
    HOST_META.name: HOST_META,
    WEBFINGER.name: WEBFINGER,
}


def protocol_by_name(name: str) -> ProtocolDescriptor:
    try:
        return PROTOCOLS[name]
    except KeyError:
        raise ValueError(f"unknown discovery protocol: {name}") from None
