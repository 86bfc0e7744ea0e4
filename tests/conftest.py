"""
Pytest configuration and shared fixtures.

``FakeSearchIndex`` answers the search endpoints from the objects held by a
``MemoryBackend`` so put-then-search scenarios run without a real index.
"""

from __future__ import annotations

import json
from collections.abc import Iterator

import httpx
import pytest

from riako.backends.memory import MemoryBackend
from riako.client import Database
from riako.config import RiakoConfig
from riako.pool import ConnectionPool


class FakeSearchIndex:
    """Evaluates ``field:value AND field:value`` queries over a memory backend."""

    def __init__(self, backend: MemoryBackend) -> None:
        self._backend = backend
        self.searchable: set[str] = set()
        self.requests: list[httpx.Request] = []

    def _matches(self, doc: dict, query: str) -> bool:
        if query == "*":
            return True
        for clause in query.split(" AND "):
            field, _, value = clause.partition(":")
            if str(doc.get(field)) != value:
                return False
        return True

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")

        if request.method == "PUT" and parts[0] == "riak":
            self.searchable.add(parts[1])
            return httpx.Response(204)

        if request.method == "GET" and parts[0] == "solr" and parts[2] == "select":
            index = parts[1]
            params = request.url.params
            start = int(params["start"])
            rows = int(params["rows"])
            docs = []
            for key, raw in sorted(self._backend.objects(index).items()):
                doc = json.loads(raw)
                if isinstance(doc, dict) and self._matches(doc, params["q"]):
                    docs.append({"id": key, **doc})
            return httpx.Response(
                200,
                json={
                    "responseHeader": {"status": 0, "QTime": 1},
                    "response": {
                        "numFound": len(docs),
                        "start": start,
                        "maxScore": "0.0",
                        "docs": docs[start : start + rows],
                    },
                },
            )

        return httpx.Response(404)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def pool(backend: MemoryBackend) -> Iterator[ConnectionPool]:
    with ConnectionPool(backend.connection_factory, capacity=4, timeout=1.0) as p:
        yield p


@pytest.fixture
def fake_index(backend: MemoryBackend) -> FakeSearchIndex:
    return FakeSearchIndex(backend)


@pytest.fixture
def db(backend: MemoryBackend, fake_index: FakeSearchIndex) -> Iterator[Database]:
    config = RiakoConfig(
        riak_address="riak:8098",
        search_address="search:8098",
        pool_size=4,
        pool_timeout=1.0,
    )
    with Database(
        config,
        connection_factory=backend.connection_factory,
        _search_transport=httpx.MockTransport(fake_index.handler),
    ) as database:
        yield database
