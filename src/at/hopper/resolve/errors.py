"""Resolution error taxonomy.

Every error carries a stable code as the first word of its message so the web layer
can return a machine readable error alongside the human readable one.
"""

from typing import Tuple

ERROR_INVALID_ATURI = "error-web-invalid-aturi Invalid AT-URI"
ERROR_UNABLE_TO_RESOLVE = "error-web-unable-to-resolve Unable to resolve AT-URI"
ERROR_FETCH_TRANSPORT = "error-discovery-transport Discovery document request failed"
ERROR_FETCH_DECODE = "error-discovery-decode Discovery document could not be decoded"
ERROR_SUBJECT_MISMATCH = "error-discovery-subject-mismatch The subject of the discovery document does not match the requested acct"


def expand_error(message: str) -> Tuple[str, str]:
    """Split an error message into its bare code and the text before any detail.

    >>> expand_error("error-web-invalid-aturi Invalid AT-URI: at://nope")
    ('error-web-invalid-aturi', 'error-web-invalid-aturi Invalid AT-URI')
    """
    bare = message.split(" ")[0]
    partial = message.split(":")[0]
    return bare, partial


class HopperError(Exception):
    """Base class for all resolution errors."""

    message: str = "error-hopper Internal error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self.message}: {detail}" if detail else self.message)

    @property
    def code(self) -> str:
        return expand_error(self.message)[0]


class InvalidIdentifierError(HopperError):
    message = ERROR_INVALID_ATURI


class FetchError(HopperError):
    """Discovery document could not be retrieved from a server."""


class FetchTransportError(FetchError):
    message = ERROR_FETCH_TRANSPORT


class FetchDecodeError(FetchError):
    message = ERROR_FETCH_DECODE


class FetchSubjectMismatchError(FetchError):
    message = ERROR_SUBJECT_MISMATCH


class AllServersExhaustedError(HopperError):
    """No candidate server declared a template for the identifier."""

    message = ERROR_UNABLE_TO_RESOLVE
