"""Tests for SymbolIndex change detection and search."""

from __future__ import annotations

import asyncio

import pytest

from codeshell.core.errors import IndexingFailure
from codeshell.index.repository import InMemoryFileIndexRepository
from codeshell.index.symbol_index import SymbolIndex, content_hash


class FailingRepository(InMemoryFileIndexRepository):
    def put(self, entry):
        raise RuntimeError("disk full")


def _index(index, path, content):
    return asyncio.run(index.index_file(path, content))


class TestIndexFile:
    def test_new_file(self):
        index = SymbolIndex()
        assert _index(index, "a.ts", "function foo() {}") is True
        entry = index.get_file("a.ts")
        assert entry.language == "typescript"
        assert entry.content_hash == content_hash("function foo() {}")
        assert [s.name for s in index.get_file_symbols("a.ts")] == ["foo"]

    def test_unchanged_content_is_a_no_op(self):
        index = SymbolIndex()
        _index(index, "a.py", "def f():\n    pass\n")
        before = index.get_file("a.py")

        assert _index(index, "a.py", "def f():\n    pass\n") is False

        after = index.get_file("a.py")
        assert after.last_modified == before.last_modified
        assert after.content_hash == before.content_hash
        assert after.symbols == before.symbols

    def test_any_change_replaces_all_symbols(self):
        index = SymbolIndex()
        _index(index, "a.py", "def alpha():\n    pass\ndef beta():\n    pass\n")
        assert _index(index, "a.py", "def alpha():\n    pass\ndef betA():\n    pass\n") is True
        assert [s.name for s in index.get_file_symbols("a.py")] == ["alpha", "betA"]
        assert index.get_file("a.py").content.endswith("betA():\n    pass\n")

    def test_symbols_for_unknown_file(self):
        assert SymbolIndex().get_file_symbols("missing.py") == []
        assert SymbolIndex().get_file("missing.py") is None

    def test_text_files_are_tracked_without_symbols(self):
        index = SymbolIndex()
        assert _index(index, "README.md", "# Title") is True
        assert index.indexed_files() == ["README.md"]
        assert index.get_file_symbols("README.md") == []

    def test_storage_failure_raises_indexing_failure(self):
        index = SymbolIndex(FailingRepository())
        with pytest.raises(IndexingFailure, match="disk full") as excinfo:
            _index(index, "a.py", "def f(): pass")
        assert excinfo.value.file_path == "a.py"
        assert index.get_file("a.py") is None

    def test_concurrent_writes_to_one_file_do_not_interleave(self):
        index = SymbolIndex()
        versions = [f"def v{i}():\n    pass\n" for i in range(20)]

        async def run():
            await asyncio.gather(*(index.index_file("race.py", v) for v in versions))

        asyncio.run(run())
        entry = index.get_file("race.py")
        assert entry.content in versions
        # Symbols always describe the stored content.
        assert [s.name for s in entry.symbols] == [entry.content.split("(")[0][4:]]

    def test_different_files_index_independently(self):
        index = SymbolIndex()

        async def run():
            return await asyncio.gather(
                index.index_file("a.py", "def a(): pass"),
                index.index_file("b.py", "def b(): pass"),
            )

        assert asyncio.run(run()) == [True, True]
        assert index.indexed_files() == ["a.py", "b.py"]


class TestRemoveFile:
    def test_remove(self):
        index = SymbolIndex()
        _index(index, "a.py", "def f(): pass")
        assert asyncio.run(index.remove_file("a.py")) is True
        assert index.get_file("a.py") is None
        assert index.search("f") == []

    def test_remove_unknown(self):
        assert asyncio.run(SymbolIndex().remove_file("nope.py")) is False

    def test_reindex_after_remove(self):
        index = SymbolIndex()
        _index(index, "a.py", "def f(): pass")
        asyncio.run(index.remove_file("a.py"))
        assert _index(index, "a.py", "def f(): pass") is True


class TestSearch:
    @pytest.fixture
    def index(self):
        index = SymbolIndex()
        _index(index, "svc.py", "class UserService:\n    def get_user(self):\n        pass\ndef user():\n    pass\n")
        _index(index, "util.py", "def parse_users(raw):\n    pass\ndef helper():\n    pass\n")
        return index

    def test_exact_then_prefix_then_substring(self, index):
        names = [s.name for s in index.search("user")]
        assert names == ["user", "UserService", "get_user", "parse_users"]

    def test_case_insensitive(self, index):
        assert [s.name for s in index.search("USERSERVICE")] == ["UserService"]

    def test_matches_signature(self, index):
        assert [s.name for s in index.search("raw")] == ["parse_users"]

    def test_limit(self, index):
        assert len(index.search("user", limit=2)) == 2

    def test_blank_query(self, index):
        assert index.search("   ") == []

    def test_no_match(self, index):
        assert index.search("zzz") == []
