"""
Data models and exception hierarchy for riako.

All public types used by the riako library are defined here. Results are
frozen dataclasses so they can be shared across threads; ``SearchQuery`` is
deliberately mutable because defaults and the built endpoint are written
back onto it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RiakoError(Exception):
    """Base exception for all riako errors.

    ``retryable`` tells callers whether repeating the operation may succeed.
    """

    retryable = False


class PoolExhaustedError(RiakoError):
    """No pooled connection became available within the acquire timeout."""

    retryable = True


class RiakoConnectionError(RiakoError):
    """A transport-level failure (dial, fetch, store, delete, HTTP)."""

    retryable = True


class BackendError(RiakoConnectionError):
    """The backend answered an object request with an unexpected status."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Backend HTTP {status_code}: {detail}")


class NotFoundError(RiakoError):
    """No object is stored under the requested bucket/key."""

    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Object not found: {bucket}/{key}")


class SerializationError(RiakoError):
    """A value could not be encoded to, or decoded from, its stored form."""


class ProtocolMismatchError(RiakoError):
    """The search engine answered with something other than what was expected."""


class SearchStatusError(ProtocolMismatchError):
    """The search engine returned an unexpected HTTP status."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class ResponseError(ProtocolMismatchError):
    """The search response could not be parsed (bad JSON, unexpected envelope)."""

    def __init__(self, message: str, raw_body: str = "") -> None:
        self.raw_body = raw_body[:2000]
        super().__init__(message)


class EntropyError(RiakoError):
    """The random source could not supply the bytes for a key."""


class KeyGenerationExhausted(RiakoError):
    """Every generated candidate key was already taken."""

    retryable = True

    def __init__(self, bucket: str, attempts: int) -> None:
        self.bucket = bucket
        self.attempts = attempts
        super().__init__(f"No unused key found in bucket {bucket!r} after {attempts} attempts")


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Record:
    """A value stored under ``bucket``/``key``."""

    bucket: str
    key: str
    value: Any


@dataclass
class SearchQuery:
    """A paginated query against a search index.

    Empty ``query``, zero ``rows`` and empty ``sort`` are replaced with
    ``*``, ``1000`` and ``"none"`` when the endpoint is built. ``endpoint``
    holds the last URL built for this query.
    """

    index: str
    query: str = ""
    start: int = 0
    rows: int = 0
    sort: str = ""
    endpoint: str = ""


@dataclass(frozen=True)
class SearchResult:
    """Documents returned by a search, plus paging information."""

    results: list[Any] = field(default_factory=list)
    start: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (e.g. for JSON output)."""
        return asdict(self)
