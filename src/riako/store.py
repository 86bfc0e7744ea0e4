"""
Record CRUD over pooled backend connections.

Every operation checks a connection out of the pool for exactly the
duration of its backend call and releases it on every exit path.
"""

from __future__ import annotations

import logging
import time
from typing import Any, TypeVar

from riako import tracing
from riako.codec import Codec, JSONCodec
from riako.keys import DEFAULT_KEY_LENGTH, KeyGenerator
from riako.models import Record
from riako.pool import ConnectionPool

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JSON: JSONCodec[Any] = JSONCodec()


def _elapsed_ms(t0: float) -> float:
    return (time.monotonic() - t0) * 1000


class RecordStore:
    """Get, put, create and delete JSON records by bucket and key.

    Args:
        pool: Source of backend connections.
        keys: Key generator used by :meth:`create`.
        key_length: Random bytes in keys generated by :meth:`create`.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        keys: KeyGenerator,
        *,
        key_length: int = DEFAULT_KEY_LENGTH,
    ) -> None:
        self._pool = pool
        self._keys = keys
        self._key_length = key_length

    def get(
        self,
        bucket: str,
        key: str,
        codec: Codec[T] = _JSON,
        *,
        timeout: float | None = None,
    ) -> T:
        """Fetch and decode the value stored under *bucket*/*key*.

        Raises:
            NotFoundError: Nothing is stored under the key.
            PoolExhaustedError: No connection became available.
            RiakoConnectionError: The backend request failed.
            SerializationError: The stored bytes could not be decoded.
        """
        with tracing.span("riako.get", bucket=bucket, key=key):
            t0 = time.monotonic()
            with self._pool.connection(timeout) as conn:
                data = conn.fetch_object(bucket, key, timeout=timeout)
            value = codec.decode(data)
            logger.debug(
                "get bucket=%r key=%r bytes=%d elapsed_ms=%.1f",
                bucket,
                key,
                len(data),
                _elapsed_ms(t0),
            )
            return value

    def get_record(
        self,
        bucket: str,
        key: str,
        codec: Codec[Any] = _JSON,
        *,
        timeout: float | None = None,
    ) -> Record:
        return Record(bucket, key, self.get(bucket, key, codec, timeout=timeout))

    def put(
        self,
        bucket: str,
        key: str,
        value: T,
        codec: Codec[T] = _JSON,
        *,
        timeout: float | None = None,
    ) -> None:
        """Encode *value* and store it under *bucket*/*key*.

        Encoding happens before a connection is acquired, so a
        ``SerializationError`` never touches the pool.
        """
        data = codec.encode(value)
        with tracing.span("riako.put", bucket=bucket, key=key):
            t0 = time.monotonic()
            with self._pool.connection(timeout) as conn:
                conn.store_object(bucket, key, data, timeout=timeout)
            tracing.set_attributes(bytes=len(data))
            logger.debug(
                "put bucket=%r key=%r bytes=%d elapsed_ms=%.1f",
                bucket,
                key,
                len(data),
                _elapsed_ms(t0),
            )

    def create(
        self,
        bucket: str,
        value: T,
        codec: Codec[T] = _JSON,
        *,
        timeout: float | None = None,
    ) -> str:
        """Store *value* under a freshly generated, unused key and return the key."""
        with tracing.span("riako.create", bucket=bucket):
            key = self._keys.unused_key(bucket, self._key_length, timeout=timeout)
            self.put(bucket, key, value, codec, timeout=timeout)
            logger.info("created bucket=%r key=%s", bucket, key)
            return key

    def delete(self, bucket: str, key: str, *, timeout: float | None = None) -> None:
        """Delete the object under *bucket*/*key*. Missing keys are not an error."""
        with tracing.span("riako.delete", bucket=bucket, key=key):
            t0 = time.monotonic()
            with self._pool.connection(timeout) as conn:
                conn.delete_object(bucket, key, timeout=timeout)
            logger.debug("delete bucket=%r key=%r elapsed_ms=%.1f", bucket, key, _elapsed_ms(t0))
