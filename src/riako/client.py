"""
riako database facade.

``Database`` wires a connection pool, key generator, record store and
search client together from one :class:`~riako.config.RiakoConfig`.

Usage:
    from riako import Database, RiakoConfig, SearchQuery

    config = RiakoConfig(riak_address="10.0.0.4:8098", search_address="10.0.0.4:8098")
    with Database(config) as db:
        key = db.create("users", {"name": "Ada"})
        user = db.get("users", key)
        db.make_searchable("users")
        page = db.search(SearchQuery(index="users", query="name:Ada"))

Operations run on the calling thread, so a request id bound with
:func:`riako.logging.request_context` around a call is attached to every
pool, key, store and search log line that call emits::

    with request_context(incoming_request_id):
        key = db.create("users", {"name": "Ada"})
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx

from riako.backends import ConnectionFactory
from riako.backends.http import HTTPConnection
from riako.codec import Codec, JSONCodec
from riako.config import RiakoConfig
from riako.keys import KeyGenerator
from riako.models import Record, SearchQuery, SearchResult
from riako.pool import ConnectionPool
from riako.search import SearchClient
from riako.store import RecordStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JSON: JSONCodec[Any] = JSONCodec()


def http_connection_factory(config: RiakoConfig) -> ConnectionFactory:
    """Return a factory creating :class:`HTTPConnection` s to ``config.riak_address``."""

    def factory() -> HTTPConnection:
        return HTTPConnection(
            config.riak_address,
            timeout_connect=config.timeout_connect,
            timeout_read=config.timeout_read,
            timeout_write=config.timeout_write,
        )

    return factory


class Database:
    """Record storage and search against one backend and one search index.

    Args:
        config: Validated configuration; read from the environment when omitted.
        connection_factory: Creates backend connections for the pool. Defaults
            to HTTP connections to ``config.riak_address``.
    """

    def __init__(
        self,
        config: RiakoConfig | None = None,
        *,
        connection_factory: ConnectionFactory | None = None,
        _search_transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or RiakoConfig.from_env()
        self._pool = ConnectionPool(
            connection_factory or http_connection_factory(self._config),
            capacity=self._config.pool_size,
            timeout=self._config.pool_timeout,
        )
        self._keys = KeyGenerator(self._pool, max_attempts=self._config.key_max_attempts)
        self._store = RecordStore(self._pool, self._keys, key_length=self._config.key_length)
        self._search = SearchClient(self._config, _transport=_search_transport)
        self._closed = False

        logger.debug(
            "Database created riak=%s search=%s pool_size=%d",
            self._config.riak_address,
            self._config.search_address,
            self._config.pool_size,
        )

    @property
    def config(self) -> RiakoConfig:
        return self._config

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Database is closed")

    # -- Records -------------------------------------------------------------

    def get(
        self, bucket: str, key: str, codec: Codec[T] = _JSON, *, timeout: float | None = None
    ) -> T:
        self._check_open()
        return self._store.get(bucket, key, codec, timeout=timeout)

    def get_record(
        self, bucket: str, key: str, codec: Codec[Any] = _JSON, *, timeout: float | None = None
    ) -> Record:
        self._check_open()
        return self._store.get_record(bucket, key, codec, timeout=timeout)

    def put(
        self,
        bucket: str,
        key: str,
        value: T,
        codec: Codec[T] = _JSON,
        *,
        timeout: float | None = None,
    ) -> None:
        self._check_open()
        self._store.put(bucket, key, value, codec, timeout=timeout)

    def create(
        self, bucket: str, value: T, codec: Codec[T] = _JSON, *, timeout: float | None = None
    ) -> str:
        self._check_open()
        return self._store.create(bucket, value, codec, timeout=timeout)

    def delete(self, bucket: str, key: str, *, timeout: float | None = None) -> None:
        self._check_open()
        self._store.delete(bucket, key, timeout=timeout)

    def unused_key(
        self, bucket: str, length: int | None = None, *, timeout: float | None = None
    ) -> str:
        self._check_open()
        if length is None:
            length = self._config.key_length
        return self._keys.unused_key(bucket, length, timeout=timeout)

    # -- Search --------------------------------------------------------------

    def search(self, query: SearchQuery, *, timeout: float | None = None) -> SearchResult:
        self._check_open()
        return self._search.search(query, timeout=timeout)

    def make_searchable(self, bucket: str, *, timeout: float | None = None) -> None:
        self._check_open()
        self._search.make_searchable(bucket, timeout=timeout)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close pooled connections and the search client."""
        if not self._closed:
            self._pool.close()
            self._search.close()
            self._closed = True
            logger.debug("Database closed riak=%s", self._config.riak_address)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
