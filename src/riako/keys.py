"""
Collision-free key generation.

Keys are random bytes tagged with UUID-v4 style version and variant bits,
hex encoded and suffixed with the creation time in Unix seconds, e.g.::

    3f1c...9a0e-1760745600

A key is only handed out after the backend confirms nothing is stored
under it.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Callable

from riako.models import EntropyError, KeyGenerationExhausted, NotFoundError
from riako.pool import ConnectionPool

logger = logging.getLogger(__name__)

DEFAULT_KEY_LENGTH = 32
DEFAULT_MAX_ATTEMPTS = 100
_MIN_KEY_LENGTH = 9


def generate_key(
    length: int = DEFAULT_KEY_LENGTH,
    *,
    random_bytes: Callable[[int], bytes] = secrets.token_bytes,
    clock: Callable[[], float] = time.time,
) -> str:
    """Return a random key of *length* bytes plus a timestamp suffix.

    Raises:
        ValueError: *length* is too short to carry the version and variant bits.
        EntropyError: The random source failed or returned too few bytes.
    """
    if length < _MIN_KEY_LENGTH:
        raise ValueError(f"key length must be >= {_MIN_KEY_LENGTH}, got {length}")

    try:
        raw = random_bytes(length)
    except (OSError, NotImplementedError) as exc:
        raise EntropyError(f"Random source failed: {exc}") from exc
    if len(raw) != length:
        raise EntropyError(f"Random source returned {len(raw)} of {length} bytes")

    b = bytearray(raw)
    b[6] = (b[6] & 0x0F) | 0x40
    b[8] = (b[8] & ~0x40 & 0xFF) | 0x80

    return f"{b.hex()}-{int(clock())}"


class KeyGenerator:
    """Generates keys that are unused in a bucket at the time of the probe.

    Args:
        pool: Pool the existence probes draw their connections from.
        max_attempts: Candidates tried before giving up.
        random_bytes: Entropy source, ``secrets.token_bytes`` by default.
        clock: Source of the timestamp suffix.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        *,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._pool = pool
        self._max_attempts = max_attempts
        self._random_bytes = random_bytes
        self._clock = clock

    def generate(self, length: int = DEFAULT_KEY_LENGTH) -> str:
        return generate_key(length, random_bytes=self._random_bytes, clock=self._clock)

    def unused_key(
        self,
        bucket: str,
        length: int = DEFAULT_KEY_LENGTH,
        *,
        timeout: float | None = None,
    ) -> str:
        """Return a key with no object stored under it in *bucket*.

        Only a not-found probe accepts a candidate. Any other probe error
        propagates unchanged.

        Raises:
            KeyGenerationExhausted: Every candidate was already taken.
            EntropyError: The random source failed.
        """
        for attempt in range(1, self._max_attempts + 1):
            key = self.generate(length)
            try:
                with self._pool.connection(timeout) as conn:
                    conn.fetch_object(bucket, key, timeout=timeout)
            except NotFoundError:
                logger.debug("unused key bucket=%r attempts=%d", bucket, attempt)
                return key
            logger.info("key collision bucket=%r key=%s attempt=%d", bucket, key, attempt)

        logger.warning(
            "key generation exhausted bucket=%r attempts=%d", bucket, self._max_attempts
        )
        raise KeyGenerationExhausted(bucket, self._max_attempts)
