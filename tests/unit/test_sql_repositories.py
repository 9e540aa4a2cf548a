"""Tests for the SQLite-backed index repositories."""

from __future__ import annotations

import asyncio
import struct

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from codeshell.config import Settings
from codeshell.core.config import EmbeddingConfig
from codeshell.core.models import EmbeddingRecord, FileIndexEntry, Symbol
from codeshell.db import (
    CodeSymbolRow,
    EmbeddingRow,
    IndexBase,
    SqlEmbeddingRepository,
    SqlFileIndexRepository,
    init_index_db,
    session_scope,
)
from codeshell.db.engine import create_index_engine
from codeshell.index.embedding_store import EmbeddingStore
from codeshell.index.embeddings import EmbeddingProvider
from codeshell.index.symbol_index import SymbolIndex


@pytest.fixture
def session_factory(tmp_path):
    engine = create_index_engine(tmp_path / "index.db")
    IndexBase.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


def _symbol(path, name, line):
    return Symbol(
        id=Symbol.make_id(path, name, line),
        name=name,
        kind="function",
        file_path=path,
        start_line=line,
        end_line=line,
        signature=f"def {name}():",
        language="python",
    )


def _entry(path, *names, content="x", digest="h1"):
    return FileIndexEntry(
        file_path=path,
        content=content,
        content_hash=digest,
        language="python",
        last_modified=1700000000.0,
        symbols=[_symbol(path, name, i + 1) for i, name in enumerate(names)],
    )


def _record(record_id, path="a.py", vector=(1.0, 0.0), start=1, end=1):
    return EmbeddingRecord(
        id=record_id,
        file_path=path,
        content=record_id,
        embedding=list(vector),
        language="python",
        start_line=start,
        end_line=end,
        symbol_type="function",
        created_at=1700000000.0,
        source="service:test-model",
    )


class TestSqlFileIndexRepository:
    def test_put_and_get(self, session_factory):
        repo = SqlFileIndexRepository(session_factory)
        repo.put(_entry("a.py", "f", "g"))
        entry = repo.get("a.py")
        assert entry.content_hash == "h1"
        assert [s.name for s in entry.symbols] == ["f", "g"]
        assert entry.symbols[0].id == "a.py:f:1"

    def test_get_missing(self, session_factory):
        assert SqlFileIndexRepository(session_factory).get("nope.py") is None

    def test_put_replaces_all_symbols(self, session_factory):
        repo = SqlFileIndexRepository(session_factory)
        repo.put(_entry("a.py", "f", "g"))
        repo.put(_entry("a.py", "h", digest="h2"))
        entry = repo.get("a.py")
        assert entry.content_hash == "h2"
        assert [s.name for s in entry.symbols] == ["h"]
        assert [s.name for s in repo.symbols()] == ["h"]

    def test_delete_cascades_to_symbols(self, session_factory):
        repo = SqlFileIndexRepository(session_factory)
        repo.put(_entry("a.py", "f", "g"))
        repo.put(_entry("b.py", "k"))
        assert repo.delete("a.py") is True
        assert repo.delete("a.py") is False
        with session_scope(session_factory) as session:
            remaining = session.scalar(select(func.count()).select_from(CodeSymbolRow))
        assert remaining == 1
        assert repo.file_paths() == ["b.py"]

    def test_symbol_index_over_sql(self, session_factory):
        index = SymbolIndex(SqlFileIndexRepository(session_factory))
        assert asyncio.run(index.index_file("a.ts", "function foo() {}")) is True
        assert asyncio.run(index.index_file("a.ts", "function foo() {}")) is False
        assert [s.name for s in index.search("foo")] == ["foo"]

    def test_invalidate_forces_reindex(self, session_factory):
        index = SymbolIndex(SqlFileIndexRepository(session_factory))
        asyncio.run(index.index_file("a.ts", "function foo() {}"))
        asyncio.run(index.invalidate("a.ts"))
        assert [s.name for s in index.get_file_symbols("a.ts")] == ["foo"]
        assert asyncio.run(index.index_file("a.ts", "function foo() {}")) is True


class TestSqlEmbeddingRepository:
    def test_vector_round_trips_as_float64(self, session_factory):
        repo = SqlEmbeddingRepository(session_factory)
        vector = [0.1, -2.5, 1e-12, 3.141592653589793]
        repo.add(_record("chunk", vector=vector))
        assert repo.get("chunk").embedding == vector
        assert repo.get("chunk").source == "service:test-model"

        with session_scope(session_factory) as session:
            blob = session.get(EmbeddingRow, "chunk").embedding
        assert blob == struct.pack("<4d", *vector)

    def test_add_replaces_same_id(self, session_factory):
        repo = SqlEmbeddingRepository(session_factory)
        repo.add(_record("chunk", vector=(1.0, 0.0)))
        repo.add(_record("chunk", vector=(0.0, 1.0)))
        assert repo.count() == 1
        assert repo.get("chunk").embedding == [0.0, 1.0]

    def test_find_at(self, session_factory):
        repo = SqlEmbeddingRepository(session_factory)
        repo.add(_record("one", start=3, end=9))
        assert repo.find_at("a.py", 3, 9).id == "one"
        assert repo.find_at("a.py", 3, 8) is None

    def test_delete_for_file(self, session_factory):
        repo = SqlEmbeddingRepository(session_factory)
        repo.add(_record("a1", path="a.py"))
        repo.add(_record("a2", path="a.py", start=2, end=2))
        repo.add(_record("b1", path="b.py"))
        assert repo.delete_for_file("a.py") == 2
        assert [r.id for r in repo.all()] == ["b1"]

    def test_embedding_store_over_sql(self, session_factory):
        provider = EmbeddingProvider(EmbeddingConfig(provider="hash", dimensions=16))
        store = EmbeddingStore(provider, SqlEmbeddingRepository(session_factory))
        asyncio.run(store.embed_chunk("x", "a.py", "def add(a, b):", "python"))
        asyncio.run(store.embed_chunk("y", "b.py", "def add(a, b):", "python"))
        results = store.find_similar_code("a.py", 1, 1)
        assert [r.id for r in results] == ["y"]
        assert results[0].similarity == pytest.approx(1.0)


def test_init_index_db_creates_tables(tmp_path):
    settings = Settings(storage_dir=tmp_path / "store")
    factory = init_index_db(settings)
    assert (tmp_path / "store" / "index.db").exists()
    repo = SqlFileIndexRepository(factory)
    repo.put(_entry("a.py", "f"))
    assert repo.file_paths() == ["a.py"]
