"""
Bounded, thread-safe pool of backend connections.

Members are created lazily through a connection factory until the pool
reaches its capacity; after that, acquirers wait for a member to be
released, up to a timeout. Every checkout re-dials the connection because
an idle member may be holding a dead socket.

Usage::

    pool = ConnectionPool(backend_factory, capacity=20, timeout=10.0)
    with pool.connection() as conn:
        data = conn.fetch_object("users", "42")
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from riako.backends import Connection, ConnectionFactory
from riako.models import PoolExhaustedError, RiakoConnectionError, RiakoError

logger = logging.getLogger(__name__)


# Outcomes of a single take attempt against the pool bookkeeping.


@dataclass(frozen=True)
class _Taken:
    connection: Connection


@dataclass(frozen=True)
class _Empty:
    """No idle member, but a member slot has been reserved for a new connection."""


@dataclass(frozen=True)
class _Failed:
    error: Exception


_TakeOutcome = _Taken | _Empty | _Failed


def _check_timeout(timeout: float) -> None:
    if not math.isfinite(timeout) or timeout < 0:
        raise ValueError(f"timeout must be a finite number >= 0, got {timeout}")


class ConnectionPool:
    """Hands out backend connections to at most ``capacity`` concurrent owners.

    Args:
        factory: Zero-argument callable returning a new, undialed connection.
        capacity: Maximum number of members (idle plus checked out).
        timeout: Default seconds ``acquire`` waits for a free member.
    """

    def __init__(
        self,
        factory: ConnectionFactory,
        capacity: int = 20,
        timeout: float = 10.0,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        _check_timeout(timeout)
        self._factory = factory
        self._capacity = capacity
        self._timeout = timeout
        self._cond = threading.Condition()
        self._idle: deque[Connection] = deque()
        self._checked_out: dict[int, Connection] = {}
        self._size = 0
        self._closed = False

    # -- Introspection -------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        """Members currently owned by the pool, idle or checked out."""
        with self._cond:
            return self._size

    @property
    def idle(self) -> int:
        with self._cond:
            return len(self._idle)

    @property
    def in_use(self) -> int:
        with self._cond:
            return len(self._checked_out)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- Checkout ------------------------------------------------------------

    def _take(self, timeout: float) -> _TakeOutcome:
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                if self._closed:
                    return _Failed(RuntimeError("ConnectionPool is closed"))
                if self._idle:
                    conn = self._idle.popleft()
                    self._checked_out[id(conn)] = conn
                    return _Taken(conn)
                if self._size < self._capacity:
                    self._size += 1
                    return _Empty()
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return _Failed(
                        PoolExhaustedError(
                            f"No connection available after {timeout:.1f}s "
                            f"({self._capacity} in use)"
                        )
                    )
                self._cond.wait(remaining)

    def _free_slot(self) -> None:
        with self._cond:
            self._size -= 1
            self._cond.notify()

    def _create(self) -> Connection:
        try:
            conn = self._factory()
        except RiakoError:
            self._free_slot()
            raise
        except Exception as exc:
            self._free_slot()
            raise RiakoConnectionError(f"Cannot create backend connection: {exc}") from exc

        with self._cond:
            self._checked_out[id(conn)] = conn
            size = self._size
        logger.debug("ConnectionPool created member %r size=%d/%d", conn, size, self._capacity)
        return conn

    def acquire(self, timeout: float | None = None) -> Connection:
        """Check out a dialed connection.

        Raises:
            PoolExhaustedError: No member became free within *timeout*
                (default: the pool's timeout).
            RiakoConnectionError: Creating or dialing the connection failed.
            RuntimeError: The pool is closed.
        """
        if timeout is not None:
            _check_timeout(timeout)
        wait = self._timeout if timeout is None else timeout
        outcome = self._take(wait)

        if isinstance(outcome, _Failed):
            if isinstance(outcome.error, PoolExhaustedError):
                logger.warning(
                    "ConnectionPool exhausted capacity=%d timeout=%.1f", self._capacity, wait
                )
            raise outcome.error
        if isinstance(outcome, _Empty):
            conn = self._create()
        else:
            conn = outcome.connection

        try:
            conn.dial()
        except Exception as exc:
            logger.warning("ConnectionPool dial failed for %r: %s", conn, exc)
            self.discard(conn)
            if isinstance(exc, RiakoError):
                raise
            raise RiakoConnectionError(f"Cannot dial backend connection: {exc}") from exc
        return conn

    def release(self, conn: Connection) -> None:
        """Return a checked-out connection to the pool.

        Releasing a connection the pool does not consider checked out is
        logged and ignored.
        """
        to_close: Connection | None = None
        with self._cond:
            if self._checked_out.pop(id(conn), None) is None:
                logger.warning("ConnectionPool release of %r which is not checked out", conn)
                return
            if self._closed:
                self._size -= 1
                to_close = conn
            else:
                self._idle.append(conn)
            self._cond.notify()
        if to_close is not None:
            self._close_member(to_close)

    def discard(self, conn: Connection) -> None:
        """Drop a checked-out connection instead of returning it, freeing its slot."""
        with self._cond:
            if self._checked_out.pop(id(conn), None) is None:
                logger.warning("ConnectionPool discard of %r which is not checked out", conn)
                return
            self._size -= 1
            self._cond.notify()
        self._close_member(conn)

    @contextmanager
    def connection(self, timeout: float | None = None) -> Iterator[Connection]:
        """Acquire a connection for the duration of a ``with`` block.

        The connection is released on every exit path.
        """
        conn = self.acquire(timeout)
        try:
            yield conn
        finally:
            self.release(conn)

    # -- Lifecycle -----------------------------------------------------------

    @staticmethod
    def _close_member(conn: Connection) -> None:
        try:
            conn.close()
        except Exception:
            logger.warning("ConnectionPool failed to close %r", conn, exc_info=True)

    def close(self) -> None:
        """Close idle members and refuse further checkouts.

        Members still checked out are closed when they are released.
        """
        with self._cond:
            if self._closed:
                return
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            self._size -= len(idle)
            self._cond.notify_all()
        for conn in idle:
            self._close_member(conn)
        logger.debug("ConnectionPool closed, %d members still checked out", self.in_use)

    def __enter__(self) -> ConnectionPool:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
