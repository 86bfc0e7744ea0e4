"""riako: pooled Riak record storage with collision-free keys and search."""

from riako.client import Database
from riako.codec import Codec, JSONCodec
from riako.config import RiakoConfig
from riako.keys import KeyGenerator, generate_key
from riako.logging import (
    bind_request_id,
    configure_logging,
    get_request_id,
    request_context,
)
from riako.models import (
    BackendError,
    EntropyError,
    KeyGenerationExhausted,
    NotFoundError,
    PoolExhaustedError,
    ProtocolMismatchError,
    Record,
    ResponseError,
    RiakoConnectionError,
    RiakoError,
    SearchQuery,
    SearchResult,
    SearchStatusError,
    SerializationError,
)
from riako.pool import ConnectionPool
from riako.search import SearchClient, build_endpoint
from riako.store import RecordStore

__version__ = "0.1.0"

__all__ = [
    "BackendError",
    "Codec",
    "ConnectionPool",
    "Database",
    "EntropyError",
    "JSONCodec",
    "KeyGenerationExhausted",
    "KeyGenerator",
    "NotFoundError",
    "PoolExhaustedError",
    "ProtocolMismatchError",
    "Record",
    "RecordStore",
    "ResponseError",
    "RiakoConfig",
    "RiakoConnectionError",
    "RiakoError",
    "SearchClient",
    "SearchQuery",
    "SearchResult",
    "SearchStatusError",
    "SerializationError",
    "__version__",
    "bind_request_id",
    "build_endpoint",
    "configure_logging",
    "generate_key",
    "get_request_id",
    "request_context",
]
