"""In-memory backend for testing without network access."""

from __future__ import annotations

import threading

from riako.models import NotFoundError, RiakoConnectionError


class MemoryBackend:
    """A thread-safe object store shared by the connections it creates.

    Usage::

        backend = MemoryBackend()
        pool = ConnectionPool(backend.connection_factory, capacity=4)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, dict[str, bytes]] = {}
        self.connections: list[MemoryConnection] = []

    def connection_factory(self) -> MemoryConnection:
        conn = MemoryConnection(self)
        with self._lock:
            self.connections.append(conn)
        return conn

    def keys(self, bucket: str) -> list[str]:
        with self._lock:
            return sorted(self._buckets.get(bucket, {}))

    def objects(self, bucket: str) -> dict[str, bytes]:
        with self._lock:
            return dict(self._buckets.get(bucket, {}))

    def _fetch(self, bucket: str, key: str) -> bytes:
        with self._lock:
            try:
                return self._buckets[bucket][key]
            except KeyError:
                raise NotFoundError(bucket, key) from None

    def _store(self, bucket: str, key: str, data: bytes) -> None:
        with self._lock:
            self._buckets.setdefault(bucket, {})[key] = data

    def _delete(self, bucket: str, key: str) -> None:
        with self._lock:
            self._buckets.get(bucket, {}).pop(key, None)


class MemoryConnection:
    """A :class:`~riako.backends.Connection` backed by a :class:`MemoryBackend`.

    ``dials`` counts calls to ``dial()``; requests on a connection that was
    never dialed, or has been closed, fail like a dead socket would.
    """

    def __init__(self, backend: MemoryBackend) -> None:
        self._backend = backend
        self._open = False
        self.dials = 0
        self.closed = False

    def dial(self) -> None:
        self.dials += 1
        self._open = True
        self.closed = False

    def _check(self) -> None:
        if not self._open:
            raise RiakoConnectionError("MemoryConnection is not dialed")

    def fetch_object(self, bucket: str, key: str, *, timeout: float | None = None) -> bytes:
        self._check()
        return self._backend._fetch(bucket, key)

    def store_object(
        self, bucket: str, key: str, data: bytes, *, timeout: float | None = None
    ) -> None:
        self._check()
        self._backend._store(bucket, key, data)

    def delete_object(self, bucket: str, key: str, *, timeout: float | None = None) -> None:
        self._check()
        self._backend._delete(bucket, key)

    def close(self) -> None:
        self._open = False
        self.closed = True
