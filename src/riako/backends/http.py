"""Riak HTTP object API connection.

Maps ``fetch_object`` / ``store_object`` / ``delete_object`` onto
``GET`` / ``PUT`` / ``DELETE /buckets/{bucket}/keys/{key}`` and translates
httpx failures into riako exceptions.
"""

from __future__ import annotations

import importlib.metadata
import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from riako.models import BackendError, NotFoundError, RiakoConnectionError

logger = logging.getLogger(__name__)

try:
    _PKG_VERSION = importlib.metadata.version("riako")
except importlib.metadata.PackageNotFoundError:
    _PKG_VERSION = "dev"

_USER_AGENT = f"riako/{_PKG_VERSION}"


def _object_path(bucket: str, key: str) -> str:
    return f"/buckets/{quote(bucket, safe='')}/keys/{quote(key, safe='')}"


class HTTPConnection:
    """A :class:`~riako.backends.Connection` over Riak's HTTP interface.

    Each ``dial()`` discards the previous ``httpx.Client`` and opens a new
    one, so a connection handed out by the pool never reuses a transport
    that went stale while it sat idle.
    """

    def __init__(
        self,
        address: str,
        *,
        timeout_connect: float = 5.0,
        timeout_read: float = 10.0,
        timeout_write: float = 10.0,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._address = address
        self._base_url = f"http://{address}"
        self._timeout = httpx.Timeout(
            connect=timeout_connect,
            read=timeout_read,
            write=timeout_write,
            pool=timeout_connect,
        )
        self._transport = _transport
        self._client: httpx.Client | None = None

    @property
    def address(self) -> str:
        return self._address

    def dial(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = httpx.Client(
            base_url=self._base_url,
            transport=self._transport,
            timeout=self._timeout,
            headers={"User-Agent": _USER_AGENT},
        )
        logger.debug("HTTPConnection dialed %s", self._base_url)

    def _request(
        self,
        method: str,
        bucket: str,
        key: str,
        *,
        timeout: float | None,
        **kwargs: Any,
    ) -> httpx.Response:
        if self._client is None:
            raise RiakoConnectionError(f"Connection to {self._address} is not dialed")
        if timeout is not None:
            kwargs["timeout"] = timeout
        t0 = time.monotonic()
        try:
            return self._client.request(method, _object_path(bucket, key), **kwargs)
        except httpx.ConnectError as exc:
            logger.warning(
                "%s %s/%s connect failed elapsed_ms=%.1f",
                method,
                bucket,
                key,
                (time.monotonic() - t0) * 1000,
            )
            raise RiakoConnectionError(f"Cannot connect to {self._address}: {exc}") from exc
        except httpx.TimeoutException as exc:
            logger.warning(
                "%s %s/%s timeout elapsed_ms=%.1f",
                method,
                bucket,
                key,
                (time.monotonic() - t0) * 1000,
            )
            raise RiakoConnectionError(f"Timeout talking to {self._address}: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s/%s failed: %s", method, bucket, key, exc)
            raise RiakoConnectionError(f"Request to {self._address} failed: {exc}") from exc

    def fetch_object(self, bucket: str, key: str, *, timeout: float | None = None) -> bytes:
        resp = self._request("GET", bucket, key, timeout=timeout)
        if resp.status_code == 404:
            raise NotFoundError(bucket, key)
        if resp.status_code != 200:
            raise BackendError(resp.status_code, resp.text[:500])
        return resp.content

    def store_object(
        self, bucket: str, key: str, data: bytes, *, timeout: float | None = None
    ) -> None:
        resp = self._request(
            "PUT",
            bucket,
            key,
            timeout=timeout,
            content=data,
            headers={"Content-Type": "application/json"},
        )
        if resp.status_code not in (200, 204):
            raise BackendError(resp.status_code, resp.text[:500])

    def delete_object(self, bucket: str, key: str, *, timeout: float | None = None) -> None:
        resp = self._request("DELETE", bucket, key, timeout=timeout)
        # Riak answers 404 for keys that were never stored or are already gone.
        if resp.status_code not in (204, 404):
            raise BackendError(resp.status_code, resp.text[:500])

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __repr__(self) -> str:
        return f"<HTTPConnection {self._address}>"
