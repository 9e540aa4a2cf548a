"""Storage interfaces for the symbol index and the embedding store.

The change detection, ranking and similarity scan live in SymbolIndex and
EmbeddingStore and only talk to these protocols. The in-memory versions
here are the default; codeshell.db.repositories provides SQLite-backed ones.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol

from codeshell.core.models import EmbeddingRecord, FileIndexEntry, Symbol


class FileIndexRepository(Protocol):
    def get(self, file_path: str) -> FileIndexEntry | None: ...

    def put(self, entry: FileIndexEntry) -> None:
        """Store ``entry``, replacing the file's previous entry and all its symbols."""
        ...

    def delete(self, file_path: str) -> bool: ...

    def symbols(self) -> list[Symbol]: ...

    def file_paths(self) -> list[str]: ...


class EmbeddingRepository(Protocol):
    def add(self, record: EmbeddingRecord) -> None:
        """Store ``record``, replacing any record with the same id."""
        ...

    def get(self, record_id: str) -> EmbeddingRecord | None: ...

    def find_at(self, file_path: str, start_line: int, end_line: int) -> EmbeddingRecord | None: ...

    def all(self) -> list[EmbeddingRecord]: ...

    def delete_for_file(self, file_path: str) -> int: ...

    def count(self) -> int: ...


class InMemoryFileIndexRepository:
    def __init__(self) -> None:
        self._entries: dict[str, FileIndexEntry] = {}
        self._lock = threading.Lock()

    def get(self, file_path: str) -> FileIndexEntry | None:
        return self._entries.get(file_path)

    def put(self, entry: FileIndexEntry) -> None:
        stored = replace(entry, symbols=list(entry.symbols))
        with self._lock:
            self._entries[entry.file_path] = stored

    def delete(self, file_path: str) -> bool:
        with self._lock:
            return self._entries.pop(file_path, None) is not None

    def symbols(self) -> list[Symbol]:
        with self._lock:
            entries = list(self._entries.values())
        return [symbol for entry in entries for symbol in entry.symbols]

    def file_paths(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)


class InMemoryEmbeddingRepository:
    def __init__(self) -> None:
        self._records: dict[str, EmbeddingRecord] = {}
        self._lock = threading.Lock()

    def add(self, record: EmbeddingRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def get(self, record_id: str) -> EmbeddingRecord | None:
        return self._records.get(record_id)

    def find_at(self, file_path: str, start_line: int, end_line: int) -> EmbeddingRecord | None:
        for record in self.all():
            if (record.file_path, record.start_line, record.end_line) == (file_path, start_line, end_line):
                return record
        return None

    def all(self) -> list[EmbeddingRecord]:
        with self._lock:
            return list(self._records.values())

    def delete_for_file(self, file_path: str) -> int:
        with self._lock:
            doomed = [rid for rid, record in self._records.items() if record.file_path == file_path]
            for rid in doomed:
                del self._records[rid]
        return len(doomed)

    def count(self) -> int:
        return len(self._records)
