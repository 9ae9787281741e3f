"""Discovery document models.

A discovery document is published by every server that can render AT Protocol
records. Its links carry URL templates and optional scoping properties. Documents
are retrieved per server, cached whole and never mutated after fetch.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Link(BaseModel):
    """A single link entry of a discovery document.

    The template may be absent, in which case the link never matches.
    """

    model_config = ConfigDict(frozen=True)

    relation: str
    template: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)


class DiscoveryDocument(BaseModel):
    """Discovery document with links kept in document order."""

    model_config = ConfigDict(frozen=True)

    properties: Dict[str, str] = Field(default_factory=dict)
    links: List[Link] = Field(default_factory=list)
