"""AT-URI parsing and validation.

An AT-URI has the shape ``at://identity[/collection[/rkey]]``. The identity is a
handle, a did:plc DID or a did:web DID; the collection is an NSID. Validation is
purely syntactic, no network lookups are performed.
"""

from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict

ATURI_PREFIX = "at://"

RESERVED_SUFFIXES = (".localhost", ".internal", ".arpa", ".local")

DID_PLC_PREFIX = "did:plc:"
DID_WEB_PREFIX = "did:web:"
DID_PLC_IDENTIFIER_LENGTH = 24

_VALID_CHARACTERS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-."
)


class IdentityType(IntEnum):
    """AT-URI identity type enumeration."""

    did_method_plc = 1
    did_method_web = 2
    handle = 3


class AtUri(BaseModel):
    """Parsed AT-URI.

    Constructed once per incoming request and never persisted.
    """

    model_config = ConfigDict(frozen=True)

    identity: str
    collection: Optional[str] = None
    rkey: Optional[str] = None


def _valid_characters(value: str) -> bool:
    return all(character in _VALID_CHARACTERS for character in value)


def _valid_labels(value: str) -> bool:
    return not any(
        len(label) == 0
        or len(label) > 63
        or label.startswith("-")
        or label.endswith("-")
        for label in value.split(".")
    )


def is_valid_hostname(hostname: str) -> bool:
    """Check if value is a public DNS hostname.

    Names under reserved suffixes (.localhost, .internal, .arpa, .local) are rejected.
    """
    return (
        len(hostname) > 0
        and len(hostname) <= 253
        and not hostname.endswith(RESERVED_SUFFIXES)
        and _valid_characters(hostname)
        and _valid_labels(hostname)
    )


def is_valid_nsid(nsid: str) -> bool:
    """Check if value is a namespaced identifier with at least three labels."""
    return (
        len(nsid) > 0
        and len(nsid) <= 253
        and _valid_characters(nsid)
        and len(nsid.split(".")) >= 3
        and _valid_labels(nsid)
    )


def identity_type(identity: str) -> IdentityType:
    if identity.startswith(DID_WEB_PREFIX):
        return IdentityType.did_method_web
    elif identity.startswith(DID_PLC_PREFIX):
        return IdentityType.did_method_plc
    return IdentityType.handle


def is_valid_identity(identity: str) -> bool:
    """Check if value is a valid AT-URI identity.

    Args:
        identity: Handle, did:plc or did:web string

    Returns:
        True if the identity is well formed for its type
    """
    kind = identity_type(identity)

    if kind == IdentityType.did_method_plc:
        return len(identity.removeprefix(DID_PLC_PREFIX)) == DID_PLC_IDENTIFIER_LENGTH

    if kind == IdentityType.did_method_web:
        hostname = identity.removeprefix(DID_WEB_PREFIX).split(":")[0]
        return is_valid_hostname(hostname) and "." in hostname

    return is_valid_hostname(identity) and "." in identity


def parse_aturi(value: str) -> Optional[AtUri]:
    """Parse and validate an AT-URI.

    Args:
        value: Raw AT-URI string, surrounding whitespace is ignored

    Returns:
        AtUri if the input is well formed, None otherwise
    """
    value = value.strip()
    if not value.startswith(ATURI_PREFIX):
        return None

    parts = value.removeprefix(ATURI_PREFIX).split("/")
    if len(parts) > 3:
        return None

    if not is_valid_identity(parts[0]):
        return None

    if len(parts) > 1 and not is_valid_nsid(parts[1]):
        return None

    return AtUri(
        identity=parts[0],
        collection=parts[1] if len(parts) > 1 else None,
        rkey=parts[2] if len(parts) > 2 else None,
    )
