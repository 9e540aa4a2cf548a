"""Tests for ProjectIndexer and the background IndexingQueue."""

from __future__ import annotations

import asyncio

import pytest

from codeshell.core.config import EmbeddingConfig
from codeshell.core.errors import IndexingFailure
from codeshell.index.embedding_store import EmbeddingStore
from codeshell.index.embeddings import EmbeddingProvider
from codeshell.index.project import ProjectIndexer
from codeshell.index.queue import IndexingQueue
from codeshell.index.symbol_index import SymbolIndex


class BrokenBackend:
    name = "broken"
    semantic = True

    async def embed(self, text):
        raise ConnectionError("service down")


def _indexer(backend=None, fallback=True):
    config = EmbeddingConfig(provider="hash", dimensions=32, fallback_to_hash=fallback)
    provider = EmbeddingProvider(config, backend=backend)
    return ProjectIndexer(SymbolIndex(), EmbeddingStore(provider))


SOURCE = "class Greeter:\n    def greet(self):\n        return 'hi'\n"


class FlakyBackend:
    """Fails the first ``failures`` calls, then answers with a fixed vector."""

    name = "flaky"
    semantic = True

    def __init__(self, failures=1):
        self.failures = failures

    async def embed(self, text):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("service down")
        return [1.0, 0.0]


class TestProjectIndexer:
    def test_indexes_symbols_and_chunks(self):
        indexer = _indexer()
        assert asyncio.run(indexer.index_file("g.py", SOURCE)) is True

        assert [s.name for s in indexer.symbols.get_file_symbols("g.py")] == ["Greeter", "greet"]
        records = {r.id: r for r in indexer.embeddings.repository.all()}
        assert set(records) == {"g.py:Greeter:1", "g.py:greet:2", "g.py:file"}
        assert records["g.py:greet:2"].symbol_type == "function"
        assert records["g.py:greet:2"].content == "def greet(self):"
        whole = records["g.py:file"]
        assert (whole.start_line, whole.end_line) == (1, 4)
        assert whole.symbol_type is None

    def test_unchanged_file_is_not_reembedded(self):
        indexer = _indexer()
        asyncio.run(indexer.index_file("g.py", SOURCE))
        created = {r.id: r.created_at for r in indexer.embeddings.repository.all()}
        assert asyncio.run(indexer.index_file("g.py", SOURCE)) is False
        assert {r.id: r.created_at for r in indexer.embeddings.repository.all()} == created

    def test_changed_file_drops_stale_chunks(self):
        indexer = _indexer()
        asyncio.run(indexer.index_file("g.py", SOURCE))
        asyncio.run(indexer.index_file("g.py", "def other():\n    pass\n"))
        ids = {r.id for r in indexer.embeddings.repository.all()}
        assert ids == {"g.py:other:1", "g.py:file"}

    def test_blank_file_has_no_file_chunk(self):
        indexer = _indexer()
        asyncio.run(indexer.index_file("empty.py", "   \n"))
        assert indexer.embeddings.count() == 0

    def test_embedding_failure_without_fallback(self):
        indexer = _indexer(backend=BrokenBackend(), fallback=False)
        with pytest.raises(IndexingFailure, match="embedding failed"):
            asyncio.run(indexer.index_file("g.py", SOURCE))

    def test_failed_embedding_is_retried_with_same_content(self):
        indexer = _indexer(backend=FlakyBackend(), fallback=False)
        with pytest.raises(IndexingFailure):
            asyncio.run(indexer.index_file("g.py", SOURCE))
        assert indexer.embeddings.count() == 0
        assert [s.name for s in indexer.symbols.get_file_symbols("g.py")] == ["Greeter", "greet"]

        assert asyncio.run(indexer.index_file("g.py", SOURCE)) is True
        assert indexer.embeddings.count() == 3
        assert asyncio.run(indexer.index_file("g.py", SOURCE)) is False

    def test_embedding_failure_with_fallback(self):
        indexer = _indexer(backend=BrokenBackend())
        assert asyncio.run(indexer.index_file("g.py", SOURCE)) is True
        assert indexer.embeddings.count() == 3
        assert indexer.embeddings.provider.semantic is False

    def test_fallback_embedded_file_is_redone_after_recovery(self):
        backend = FlakyBackend(failures=3)
        indexer = _indexer(backend=backend)
        asyncio.run(indexer.index_file("g.py", SOURCE))
        assert {r.source for r in indexer.embeddings.repository.all()} == {"hash:32"}

        assert asyncio.run(indexer.index_file("g.py", SOURCE)) is True
        sources = {r.source for r in indexer.embeddings.repository.all()}
        assert len(sources) == 1
        assert sources.pop().startswith("flaky:")
        assert asyncio.run(indexer.index_file("g.py", SOURCE)) is False

    def test_index_path_reads_file(self, tmp_path):
        path = tmp_path / "mod.py"
        path.write_text("def run():\n    pass\n")
        indexer = _indexer()
        assert asyncio.run(indexer.index_path(path)) is True
        assert [s.name for s in indexer.symbols.get_file_symbols(str(path))] == ["run"]

    def test_index_path_missing_file(self, tmp_path):
        with pytest.raises(IndexingFailure):
            asyncio.run(_indexer().index_path(tmp_path / "missing.py"))

    def test_remove_file(self):
        indexer = _indexer()
        asyncio.run(indexer.index_file("g.py", SOURCE))
        assert asyncio.run(indexer.remove_file("g.py")) is True
        assert indexer.symbols.indexed_files() == []
        assert indexer.embeddings.count() == 0


class TestIndexingQueue:
    def test_processes_jobs_in_order(self, tmp_path):
        disk = tmp_path / "disk.py"
        disk.write_text("def from_disk():\n    pass\n")
        indexer = _indexer()
        queue = IndexingQueue(indexer)

        async def run():
            queue.submit("a.py", "def a(): pass")
            queue.submit(str(disk))
            queue.submit("b.py", "def b(): pass")
            queue.submit_removal("b.py")
            await queue.join()
            await queue.stop()

        asyncio.run(run())
        assert queue.completed == 4
        assert queue.failures == []
        assert indexer.symbols.indexed_files() == sorted(["a.py", str(disk)])

    def test_failure_does_not_stop_worker(self, tmp_path):
        indexer = _indexer()
        queue = IndexingQueue(indexer)

        async def run():
            queue.submit(str(tmp_path / "missing.py"))
            queue.submit("ok.py", "def ok(): pass")
            await queue.stop()

        asyncio.run(run())
        assert queue.completed == 1
        assert len(queue.failures) == 1
        assert queue.failures[0].file_path == str(tmp_path / "missing.py")
        assert indexer.symbols.indexed_files() == ["ok.py"]

    def test_pending_and_idle_stop(self):
        queue = IndexingQueue(_indexer())
        assert queue.pending == 0
        asyncio.run(queue.stop())
        asyncio.run(queue.join())
