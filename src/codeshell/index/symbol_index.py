"""Change-detected per-file symbol index with name search."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import replace

from codeshell.core.errors import IndexingFailure
from codeshell.core.models import FileIndexEntry, Symbol
from codeshell.index.repository import FileIndexRepository, InMemoryFileIndexRepository
from codeshell.index.symbols import detect_language, extract_symbols

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class SymbolIndex:
    """Symbols per file, regenerated wholesale whenever the content hash changes.

    ``index_file`` for one path runs as a critical section (an asyncio lock
    per path), so two concurrent writers to the same file never interleave
    their symbol replacement. Different files index independently.
    """

    def __init__(self, repository: FileIndexRepository | None = None):
        self.repository = repository or InMemoryFileIndexRepository()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, file_path: str) -> asyncio.Lock:
        lock = self._locks.get(file_path)
        if lock is None:
            lock = self._locks[file_path] = asyncio.Lock()
        return lock

    async def index_file(self, file_path: str, content: str) -> bool:
        """Index ``content`` for ``file_path``.

        Returns False (and touches nothing) when the content hash matches the
        stored one, True after a re-index. Raises IndexingFailure if symbol
        extraction or storage fails; the previous entry is left in place.
        """
        digest = content_hash(content)
        async with self._lock_for(file_path):
            existing = self.repository.get(file_path)
            if existing is not None and existing.content_hash == digest:
                logger.debug("Skipping unchanged file %s", file_path)
                return False

            language = detect_language(file_path)
            try:
                symbols = extract_symbols(file_path, content, language)
                self.repository.put(
                    FileIndexEntry(
                        file_path=file_path,
                        content=content,
                        content_hash=digest,
                        language=language,
                        last_modified=time.time(),
                        symbols=symbols,
                    )
                )
            except Exception as exc:
                raise IndexingFailure(file_path, str(exc)) from exc

        logger.info("Indexed file: %s (%d symbols)", file_path, len(symbols))
        return True

    async def invalidate(self, file_path: str) -> None:
        """Clear the stored hash so the next index_file for this path re-indexes.

        Symbols stay searchable until then.
        """
        async with self._lock_for(file_path):
            entry = self.repository.get(file_path)
            if entry is not None:
                self.repository.put(replace(entry, content_hash=""))

    def get_file(self, file_path: str) -> FileIndexEntry | None:
        return self.repository.get(file_path)

    def get_file_symbols(self, file_path: str) -> list[Symbol]:
        entry = self.repository.get(file_path)
        return list(entry.symbols) if entry is not None else []

    async def remove_file(self, file_path: str) -> bool:
        """Drop the file's entry and, with it, all of its symbols."""
        async with self._lock_for(file_path):
            removed = self.repository.delete(file_path)
        self._locks.pop(file_path, None)
        if removed:
            logger.info("Removed file from index: %s", file_path)
        return removed

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> list[Symbol]:
        """Case-insensitive substring search over symbol names and signatures.

        Exact name matches rank first, then name prefix matches, then any
        other hit; ties are broken alphabetically by name.
        """
        needle = query.strip().lower()
        if not needle:
            return []

        ranked: list[tuple[int, str, str, int, Symbol]] = []
        for symbol in self.repository.symbols():
            name = symbol.name.lower()
            if needle not in name and needle not in symbol.signature.lower():
                continue
            if name == needle:
                rank = 0
            elif name.startswith(needle):
                rank = 1
            else:
                rank = 2
            ranked.append((rank, name, symbol.file_path, symbol.start_line, symbol))

        ranked.sort(key=lambda item: item[:4])
        return [item[4] for item in ranked[:limit]]

    def indexed_files(self) -> list[str]:
        return self.repository.file_paths()
