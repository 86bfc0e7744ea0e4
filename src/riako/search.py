"""
Search index client.

Runs paginated queries against the Solr-compatible ``/solr/{index}/select``
endpoint and registers buckets for indexing through the backend's
pre-commit hook. Queries are passed through verbatim.
"""

from __future__ import annotations

import logging
import time
from typing import Any, NoReturn
from urllib.parse import quote, urlencode

import httpx

from riako import tracing
from riako.backends.http import _USER_AGENT
from riako.config import RiakoConfig
from riako.models import (
    ResponseError,
    RiakoConnectionError,
    SearchQuery,
    SearchResult,
    SearchStatusError,
)

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "*"
DEFAULT_ROWS = 1000
DEFAULT_SORT = "none"

_PRECOMMIT_BODY = '{"props":{"precommit":[{"mod":"riak_search_kv_hook","fun":"precommit"}]}}'


def build_endpoint(query: SearchQuery, search_address: str) -> str:
    """Fill query defaults in place and return the select URL for *query*.

    Parameters are emitted sorted by name. The URL is also stored on
    ``query.endpoint``.
    """
    if not query.query:
        query.query = DEFAULT_QUERY
    if query.rows == 0:
        query.rows = DEFAULT_ROWS
    if not query.sort:
        query.sort = DEFAULT_SORT

    params = {
        "q": query.query,
        "q.op": "and",
        "start": str(query.start),
        "rows": str(query.rows),
        "sort": query.sort,
        "wt": "json",
    }
    encoded = urlencode(sorted(params.items()), safe="*")

    query.endpoint = f"http://{search_address}/solr/{quote(query.index, safe='')}/select?{encoded}"
    return query.endpoint


def _int_field(envelope: dict[str, Any], name: str) -> int:
    value = envelope.get(name, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _parse_envelope(data: Any) -> SearchResult:
    """Map ``{"response": {"numFound", "start", "docs"}}`` onto a SearchResult."""
    if not isinstance(data, dict):
        raise ResponseError(
            f"Expected JSON object from search, got {type(data).__name__}",
            raw_body=str(data),
        )
    response = data.get("response")
    if not isinstance(response, dict):
        raise ResponseError(
            f"Expected 'response' dict in search JSON, got {type(response).__name__}",
            raw_body=str(data),
        )

    docs = response.get("docs", [])
    if not isinstance(docs, list):
        docs = []

    return SearchResult(
        results=docs,
        start=_int_field(response, "start"),
        total=_int_field(response, "numFound"),
    )


def _handle_http_error(exc: Exception, target: str, t0: float, address: str) -> NoReturn:
    """Map httpx exceptions to riako exceptions. Always raises."""
    elapsed = (time.monotonic() - t0) * 1000
    if isinstance(exc, httpx.HTTPStatusError):
        detail = exc.response.text[:500]
        logger.warning(
            "search HTTP %d for %s (%.1fms)", exc.response.status_code, target, elapsed
        )
        raise SearchStatusError(exc.response.status_code, detail) from exc

    if isinstance(exc, httpx.ConnectError):
        logger.warning("search connection failed for %s (%.1fms): %s", target, elapsed, exc)
        raise RiakoConnectionError(f"Cannot connect to search at {address}: {exc}") from exc

    if isinstance(exc, httpx.TimeoutException):
        logger.warning("search timeout for %s (%.1fms)", target, elapsed)
        raise RiakoConnectionError(f"Timeout talking to search at {address}: {exc}") from exc

    if isinstance(exc, httpx.DecodingError):
        logger.warning("search decoding error for %s (%.1fms): %s", target, elapsed, exc)
        raise ResponseError(f"Failed to decode search response: {exc}") from exc

    logger.warning("search error for %s (%.1fms): %s", target, elapsed, exc)
    raise RiakoConnectionError(f"Search request failed: {exc}") from exc


class SearchClient:
    """Client for the search endpoint at ``config.search_address``.

    Holds one persistent ``httpx.Client``. Usable as a context manager.
    """

    def __init__(
        self,
        config: RiakoConfig,
        *,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._address = config.search_address
        self._client = httpx.Client(
            transport=_transport,
            timeout=httpx.Timeout(
                connect=config.timeout_connect,
                read=config.timeout_read,
                write=config.timeout_write,
                pool=config.pool_timeout,
            ),
            headers={"Accept": "application/json", "User-Agent": _USER_AGENT},
        )
        self._closed = False

    def endpoint(self, query: SearchQuery) -> str:
        return build_endpoint(query, self._address)

    def search(self, query: SearchQuery, *, timeout: float | None = None) -> SearchResult:
        """Run *query* and return the page of results it selects.

        Raises:
            SearchStatusError: The index answered with a non-2xx status.
            ResponseError: The body was not a valid response envelope.
            RiakoConnectionError: The request could not be completed.
        """
        if self._closed:
            raise RuntimeError("SearchClient is closed")

        url = self.endpoint(query)
        kwargs: dict[str, Any] = {} if timeout is None else {"timeout": timeout}
        logger.debug("search start index=%r q=%r url=%s", query.index, query.query, url)

        with tracing.span("riako.search", index=query.index, query=query.query):
            t0 = time.monotonic()
            try:
                resp = self._client.get(url, **kwargs)
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                _handle_http_error(exc, url, t0, self._address)

            try:
                data = resp.json()
            except ValueError as exc:
                logger.warning("search returned non-JSON body for %s: %s", url, exc)
                raise ResponseError(
                    f"Failed to decode search response: {exc}", raw_body=resp.text
                ) from exc

            result = _parse_envelope(data)
            elapsed = (time.monotonic() - t0) * 1000
            tracing.set_attributes(total=result.total, returned=len(result.results))
            logger.info(
                "search index=%r q=%r total=%d returned=%d elapsed_ms=%.1f",
                query.index,
                query.query,
                result.total,
                len(result.results),
                elapsed,
            )
            return result

    def make_searchable(self, bucket: str, *, timeout: float | None = None) -> None:
        """Install the indexing pre-commit hook on *bucket*.

        Raises:
            SearchStatusError: The endpoint did not answer ``204 No Content``.
            RiakoConnectionError: The request could not be completed.
        """
        if self._closed:
            raise RuntimeError("SearchClient is closed")

        url = f"http://{self._address}/riak/{quote(bucket, safe='')}"
        kwargs: dict[str, Any] = {} if timeout is None else {"timeout": timeout}

        with tracing.span("riako.make_searchable", bucket=bucket):
            t0 = time.monotonic()
            try:
                resp = self._client.put(
                    url,
                    content=_PRECOMMIT_BODY,
                    headers={"content-type": "application/json"},
                    **kwargs,
                )
            except httpx.HTTPError as exc:
                _handle_http_error(exc, url, t0, self._address)

            if resp.status_code != 204:
                logger.warning("make_searchable bucket=%r HTTP %d", bucket, resp.status_code)
                raise SearchStatusError(
                    resp.status_code,
                    f"failure code from riak endpoint - {resp.text[:500]}",
                )
            logger.info("bucket %r is searchable", bucket)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        if not self._closed:
            self._client.close()
            self._closed = True

    def __enter__(self) -> SearchClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
