"""Tests for riako.keys -- key format and unused-key probing."""

from __future__ import annotations

import itertools
import re

import pytest

from riako.backends.memory import MemoryBackend
from riako.keys import KeyGenerator, generate_key
from riako.models import (
    EntropyError,
    KeyGenerationExhausted,
    NotFoundError,
    RiakoConnectionError,
)
from riako.pool import ConnectionPool

_KEY_RE = re.compile(r"^[0-9a-f]{64}-\d+$")


def _fixed_bytes(value: int):
    def random_bytes(n: int) -> bytes:
        return bytes([value]) * n

    return random_bytes


class TestGenerateKey:
    def test_format(self) -> None:
        key = generate_key(32)
        assert _KEY_RE.match(key)

    def test_timestamp_suffix(self) -> None:
        key = generate_key(16, clock=lambda: 1760745600.9)
        assert key.endswith("-1760745600")

    def test_version_and_variant_bits_from_ones(self) -> None:
        hex_part = generate_key(16, random_bytes=_fixed_bytes(0xFF)).split("-")[0]
        raw = bytes.fromhex(hex_part)
        assert raw[6] == 0x4F
        assert raw[8] == 0xBF
        assert raw[0] == 0xFF

    def test_version_and_variant_bits_from_zeros(self) -> None:
        hex_part = generate_key(16, random_bytes=_fixed_bytes(0x00)).split("-")[0]
        raw = bytes.fromhex(hex_part)
        assert raw[6] == 0x40
        assert raw[8] == 0x80

    def test_tag_bits_always_set(self) -> None:
        for _ in range(50):
            raw = bytes.fromhex(generate_key(32).split("-")[0])
            assert raw[6] >> 4 == 0x4
            assert raw[8] >> 6 == 0b10

    def test_keys_are_distinct(self) -> None:
        keys = {generate_key(32) for _ in range(500)}
        assert len(keys) == 500

    def test_short_length_rejected(self) -> None:
        with pytest.raises(ValueError, match="key length"):
            generate_key(8)

    def test_random_source_failure(self) -> None:
        def broken(n: int) -> bytes:
            raise OSError("getrandom failed")

        with pytest.raises(EntropyError, match="getrandom failed"):
            generate_key(32, random_bytes=broken)

    def test_short_read_from_random_source(self) -> None:
        with pytest.raises(EntropyError, match="10 of 32"):
            generate_key(32, random_bytes=lambda n: b"\x00" * 10)


class TestUnusedKey:
    def test_returns_unused_key(self, backend: MemoryBackend, pool: ConnectionPool) -> None:
        keys = KeyGenerator(pool)
        key = keys.unused_key("test-bucket", 32)
        assert _KEY_RE.match(key)
        assert key not in backend.keys("test-bucket")
        assert pool.in_use == 0

    def test_retries_on_collision(self, backend: MemoryBackend, pool: ConnectionPool) -> None:
        values = itertools.cycle([0x11, 0x11, 0x22])

        def random_bytes(n: int) -> bytes:
            return bytes([next(values)]) * n

        clock = lambda: 1000.0  # noqa: E731
        taken = generate_key(16, random_bytes=_fixed_bytes(0x11), clock=clock)
        with pool.connection() as conn:
            conn.store_object("test-bucket", taken, b"{}")

        keys = KeyGenerator(pool, random_bytes=random_bytes, clock=clock)
        key = keys.unused_key("test-bucket", 16)
        assert key != taken
        assert key == generate_key(16, random_bytes=_fixed_bytes(0x22), clock=clock)
        assert pool.in_use == 0

    def test_exhaustion_raises_typed_error(
        self, backend: MemoryBackend, pool: ConnectionPool
    ) -> None:
        clock = lambda: 1000.0  # noqa: E731
        taken = generate_key(16, random_bytes=_fixed_bytes(0x33), clock=clock)
        with pool.connection() as conn:
            conn.store_object("test-bucket", taken, b"{}")

        keys = KeyGenerator(pool, max_attempts=5, random_bytes=_fixed_bytes(0x33), clock=clock)
        with pytest.raises(KeyGenerationExhausted) as exc_info:
            keys.unused_key("test-bucket", 16)
        assert exc_info.value.attempts == 5
        assert exc_info.value.bucket == "test-bucket"
        assert pool.in_use == 0

    def test_probe_error_propagates(self, backend: MemoryBackend) -> None:
        class FailingProbe:
            def dial(self) -> None:
                pass

            def fetch_object(self, bucket: str, key: str, *, timeout: float | None = None) -> bytes:
                raise RiakoConnectionError("connection reset")

            def close(self) -> None:
                pass

        pool = ConnectionPool(FailingProbe, capacity=1, timeout=0.1)  # type: ignore[arg-type]
        with pytest.raises(RiakoConnectionError, match="connection reset"):
            KeyGenerator(pool).unused_key("test-bucket")
        assert pool.in_use == 0

    def test_entropy_error_propagates(self, pool: ConnectionPool) -> None:
        def broken(n: int) -> bytes:
            raise NotImplementedError("no entropy source")

        with pytest.raises(EntropyError):
            KeyGenerator(pool, random_bytes=broken).unused_key("test-bucket")

    def test_probe_uses_not_found(self, pool: ConnectionPool) -> None:
        key = KeyGenerator(pool).unused_key("test-bucket")
        with pool.connection() as conn:
            with pytest.raises(NotFoundError):
                conn.fetch_object("test-bucket", key)

    def test_invalid_max_attempts(self, pool: ConnectionPool) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            KeyGenerator(pool, max_attempts=0)
