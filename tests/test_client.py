"""Tests for riako.client -- the Database facade end to end.

Records live in a MemoryBackend and search requests are answered by the
FakeSearchIndex from conftest, so put-then-search runs without a cluster.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

import httpx
import pytest

from riako.backends.http import HTTPConnection
from riako.backends.memory import MemoryBackend
from riako.client import Database, http_connection_factory
from riako.codec import JSONCodec
from riako.config import RiakoConfig
from riako.models import NotFoundError, SearchQuery, SearchStatusError


@dataclass
class Pair:
    A: str = ""
    B: str = ""


PAIRS: JSONCodec[Pair] = JSONCodec(lambda raw: Pair(**raw))


class TestRecords:
    def test_put_get(self, db: Database) -> None:
        db.put("test-bucket", "1", Pair(A="Hello"))
        assert db.get("test-bucket", "1", PAIRS) == Pair(A="Hello")

    def test_create_then_get(self, db: Database) -> None:
        key = db.create("test-bucket", Pair(A="Hello"))
        assert db.get("test-bucket", key, PAIRS).A == "Hello"
        assert db.get_record("test-bucket", key).value == {"A": "Hello", "B": ""}

    def test_delete_then_get(self, db: Database) -> None:
        db.put("test-bucket", "1", {"A": "Hello"})
        db.delete("test-bucket", "1")
        with pytest.raises(NotFoundError):
            db.get("test-bucket", "1")

    def test_unused_key(self, db: Database, backend: MemoryBackend) -> None:
        key = db.unused_key("test-bucket")
        assert key
        assert len(key.split("-")[0]) == 64
        assert key not in backend.keys("test-bucket")

    def test_unused_key_custom_length(self, db: Database) -> None:
        assert len(db.unused_key("test-bucket", 16).split("-")[0]) == 32

    def test_unused_key_explicit_zero_length(self, db: Database) -> None:
        with pytest.raises(ValueError, match="length"):
            db.unused_key("test-bucket", 0)

    def test_concurrent_creates_respect_pool(self, db: Database) -> None:
        keys: list[str] = []
        lock = threading.Lock()

        def worker(n: int) -> None:
            for i in range(10):
                key = db.create("test-bucket", {"worker": n, "i": i})
                with lock:
                    keys.append(key)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(set(keys)) == 80
        assert db.pool.size <= db.config.pool_size
        assert db.pool.in_use == 0


class TestSearch:
    def test_search_scenario(self, db: Database, fake_index: Any) -> None:
        db.make_searchable("test-bucket")
        assert "test-bucket" in fake_index.searchable

        db.put("test-bucket", "1", Pair(A="1", B="2"))

        hit = SearchQuery(index="test-bucket", query="A:1 AND B:2")
        result = db.search(hit)
        assert result.total == 1, hit.endpoint
        assert result.results[0]["id"] == "1"

        miss = SearchQuery(index="test-bucket", query="A:1 AND B:3")
        assert db.search(miss).total == 0, miss.endpoint

    def test_search_paging(self, db: Database) -> None:
        for i in range(5):
            db.put("test-bucket", str(i), {"A": "1"})
        result = db.search(SearchQuery(index="test-bucket", query="A:1", start=2, rows=2))
        assert result.total == 5
        assert result.start == 2
        assert [doc["id"] for doc in result.results] == ["2", "3"]

    def test_default_query_matches_everything(self, db: Database) -> None:
        db.put("test-bucket", "1", {"A": "1"})
        db.put("test-bucket", "2", {"A": "2"})
        q = SearchQuery(index="test-bucket")
        assert db.search(q).total == 2
        assert "q=*" in q.endpoint

    def test_make_searchable_failure(self, backend: MemoryBackend) -> None:
        with Database(
            RiakoConfig(),
            connection_factory=backend.connection_factory,
            _search_transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        ) as db:
            with pytest.raises(SearchStatusError) as exc_info:
                db.make_searchable("test-bucket")
        assert exc_info.value.status_code == 500


class TestLifecycle:
    def test_closed_database_raises(self, backend: MemoryBackend) -> None:
        db = Database(RiakoConfig(), connection_factory=backend.connection_factory)
        db.close()
        with pytest.raises(RuntimeError, match="closed"):
            db.get("test-bucket", "1")

    def test_close_closes_pooled_connections(self, backend: MemoryBackend) -> None:
        with Database(RiakoConfig(), connection_factory=backend.connection_factory) as db:
            db.put("test-bucket", "1", {})
        assert backend.connections
        assert all(conn.closed for conn in backend.connections)

    def test_config_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RIAKO_POOL_SIZE", "3")
        with Database() as db:
            assert db.config.pool_size == 3
            assert db.pool.capacity == 3

    def test_default_factory_builds_http_connections(self) -> None:
        config = RiakoConfig(riak_address="riak:8098")
        conn = http_connection_factory(config)()
        assert isinstance(conn, HTTPConnection)
        assert conn.address == "riak:8098"
