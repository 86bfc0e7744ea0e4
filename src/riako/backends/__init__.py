"""Backend connections for riako.

The :class:`Connection` protocol is the contract between the connection
pool and a key-value backend. :class:`~riako.backends.http.HTTPConnection`
talks to Riak's HTTP object API; :class:`~riako.backends.memory.MemoryBackend`
keeps objects in process for tests and offline development.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """A single-owner session with the backend.

    ``fetch_object`` must raise :class:`~riako.models.NotFoundError` when the
    key is absent; other failures raise
    :class:`~riako.models.RiakoConnectionError`.
    """

    def dial(self) -> None: ...

    def fetch_object(self, bucket: str, key: str, *, timeout: float | None = None) -> bytes: ...

    def store_object(
        self, bucket: str, key: str, data: bytes, *, timeout: float | None = None
    ) -> None: ...

    def delete_object(self, bucket: str, key: str, *, timeout: float | None = None) -> None: ...

    def close(self) -> None: ...


ConnectionFactory = Callable[[], Connection]

__all__ = ["Connection", "ConnectionFactory"]
