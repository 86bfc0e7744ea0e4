"""
Configuration for riako.

All configuration is validated at construction time, not per-call.
Environment variables are read once via ``RiakoConfig.from_env()`` and
the resulting object is immutable.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_DEFAULT_RIAK_ADDRESS = "127.0.0.1:8098"
_DEFAULT_SEARCH_ADDRESS = "127.0.0.1:8098"
_DEFAULT_POOL_SIZE = 20
_DEFAULT_POOL_TIMEOUT = 10.0
_DEFAULT_TIMEOUT_CONNECT = 5.0
_DEFAULT_TIMEOUT_READ = 10.0
_DEFAULT_TIMEOUT_WRITE = 10.0
_DEFAULT_KEY_LENGTH = 32
_DEFAULT_KEY_MAX_ATTEMPTS = 100
_MIN_KEY_LENGTH = 9


def _normalize_address(address: str) -> str:
    """Strip a scheme prefix and trailing slash from a ``host:port`` address."""
    for prefix in ("http://", "https://"):
        if address.startswith(prefix):
            address = address[len(prefix) :]
    return address.rstrip("/")


@dataclass(frozen=True)
class RiakoConfig:
    """Validated, immutable configuration for a riako database.

    Args:
        riak_address: ``host:port`` of the backend's object API.
        search_address: ``host:port`` of the search endpoint (``/solr``
            queries and ``/riak`` bucket properties).
        pool_size: Maximum number of pooled backend connections.
        pool_timeout: Seconds to wait for a free connection before failing.
        timeout_connect: TCP connect timeout in seconds.
        timeout_read: Read timeout in seconds.
        timeout_write: Write timeout in seconds.
        key_length: Random bytes in keys generated by ``create`` (>= 9).
        key_max_attempts: Candidate keys tried before key generation gives up.
    """

    riak_address: str = _DEFAULT_RIAK_ADDRESS
    search_address: str = _DEFAULT_SEARCH_ADDRESS
    pool_size: int = _DEFAULT_POOL_SIZE
    pool_timeout: float = _DEFAULT_POOL_TIMEOUT
    timeout_connect: float = _DEFAULT_TIMEOUT_CONNECT
    timeout_read: float = _DEFAULT_TIMEOUT_READ
    timeout_write: float = _DEFAULT_TIMEOUT_WRITE
    key_length: int = _DEFAULT_KEY_LENGTH
    key_max_attempts: int = _DEFAULT_KEY_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        object.__setattr__(self, "riak_address", _normalize_address(self.riak_address))
        object.__setattr__(self, "search_address", _normalize_address(self.search_address))

        errors: list[str] = []

        if not self.riak_address:
            errors.append("riak_address must be a non-empty string")
        if not self.search_address:
            errors.append("search_address must be a non-empty string")
        if self.pool_size < 1:
            errors.append(f"pool_size must be >= 1, got {self.pool_size}")
        for name in ("pool_timeout", "timeout_connect", "timeout_read", "timeout_write"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                errors.append(f"{name} must be a finite number > 0, got {value}")
        if self.key_length < _MIN_KEY_LENGTH:
            errors.append(f"key_length must be >= {_MIN_KEY_LENGTH}, got {self.key_length}")
        if self.key_max_attempts < 1:
            errors.append(f"key_max_attempts must be >= 1, got {self.key_max_attempts}")

        if errors:
            raise ValueError("Invalid riako configuration: " + "; ".join(errors))

    @classmethod
    def from_env(cls, **overrides: object) -> RiakoConfig:
        """Build config from environment variables with optional overrides.

        Environment variables:
            RIAKO_RIAK_ADDRESS      -- backend host:port (default 127.0.0.1:8098)
            RIAKO_SEARCH_ADDRESS    -- search host:port (default 127.0.0.1:8098)
            RIAKO_POOL_SIZE         -- pool capacity (default 20)
            RIAKO_POOL_TIMEOUT      -- acquire timeout seconds (default 10.0)
            RIAKO_TIMEOUT_CONNECT   -- connect timeout seconds (default 5.0)
            RIAKO_TIMEOUT_READ      -- read timeout seconds (default 10.0)
            RIAKO_TIMEOUT_WRITE     -- write timeout seconds (default 10.0)
            RIAKO_KEY_LENGTH        -- random bytes per generated key (default 32)
            RIAKO_KEY_MAX_ATTEMPTS  -- key generation attempts (default 100)

        Explicit keyword arguments override environment variables.
        """

        def _env_float(key: str, default: float) -> float:
            raw = os.environ.get(key)
            if raw is None:
                return default
            try:
                return float(raw)
            except ValueError:
                raise ValueError(f"Environment variable {key}={raw!r} is not a valid number")

        def _env_int(key: str, default: int) -> int:
            raw = os.environ.get(key)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"Environment variable {key}={raw!r} is not a valid integer")

        kwargs: dict[str, object] = {
            "riak_address": os.environ.get("RIAKO_RIAK_ADDRESS", _DEFAULT_RIAK_ADDRESS),
            "search_address": os.environ.get("RIAKO_SEARCH_ADDRESS", _DEFAULT_SEARCH_ADDRESS),
            "pool_size": _env_int("RIAKO_POOL_SIZE", _DEFAULT_POOL_SIZE),
            "pool_timeout": _env_float("RIAKO_POOL_TIMEOUT", _DEFAULT_POOL_TIMEOUT),
            "timeout_connect": _env_float("RIAKO_TIMEOUT_CONNECT", _DEFAULT_TIMEOUT_CONNECT),
            "timeout_read": _env_float("RIAKO_TIMEOUT_READ", _DEFAULT_TIMEOUT_READ),
            "timeout_write": _env_float("RIAKO_TIMEOUT_WRITE", _DEFAULT_TIMEOUT_WRITE),
            "key_length": _env_int("RIAKO_KEY_LENGTH", _DEFAULT_KEY_LENGTH),
            "key_max_attempts": _env_int("RIAKO_KEY_MAX_ATTEMPTS", _DEFAULT_KEY_MAX_ATTEMPTS),
        }
        kwargs.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(**kwargs)  # type: ignore[arg-type]
        logger.info(
            "riako config: riak=%s search=%s pool_size=%d pool_timeout=%.1f"
            " timeout_read=%.1f timeout_write=%.1f",
            config.riak_address,
            config.search_address,
            config.pool_size,
            config.pool_timeout,
            config.timeout_read,
            config.timeout_write,
        )
        return config
