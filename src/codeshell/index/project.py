"""Keeps the symbol index and the embedding store in step for a project."""

from __future__ import annotations

import logging
from pathlib import Path

from codeshell.core.errors import IndexingFailure
from codeshell.index.embedding_store import EmbeddingStore
from codeshell.index.symbol_index import SymbolIndex

logger = logging.getLogger(__name__)


class ProjectIndexer:
    """Indexes a file's symbols, then re-embeds it when its content changed.

    Each symbol's declaration line becomes one chunk, and the whole file
    one more (id ``<path>:file``).
    """

    def __init__(self, symbols: SymbolIndex, embeddings: EmbeddingStore):
        self.symbols = symbols
        self.embeddings = embeddings

    async def index_file(self, file_path: str, content: str) -> bool:
        """Index one file. Returns False when its content was unchanged.

        Raises IndexingFailure for this file only.
        """
        changed = await self.symbols.index_file(file_path, content)
        if not changed:
            return False

        entry = self.symbols.get_file(file_path)
        language = entry.language if entry is not None else "text"
        self.embeddings.remove_embeddings_for_file(file_path)
        records = []
        try:
            for symbol in self.symbols.get_file_symbols(file_path):
                record = await self.embeddings.embed_chunk(
                    symbol.id,
                    file_path,
                    symbol.signature,
                    language,
                    symbol_type=symbol.kind,
                    start_line=symbol.start_line,
                    end_line=symbol.end_line,
                )
                records.append(record)
            if content.strip():
                record = await self.embeddings.embed_chunk(
                    f"{file_path}:file",
                    file_path,
                    content,
                    language,
                    start_line=1,
                    end_line=content.count("\n") + 1,
                )
                records.append(record)
        except Exception as exc:
            # Drop the partial chunks; the same content must embed again next time.
            self.embeddings.remove_embeddings_for_file(file_path)
            await self.symbols.invalidate(file_path)
            raise IndexingFailure(file_path, f"embedding failed: {exc}") from exc

        provider = self.embeddings.provider
        expected = provider.source_of(provider.backend)
        if any(r.source != expected for r in records):
            # Fallback vectors are stand-ins; re-embed on the next pass.
            await self.symbols.invalidate(file_path)
            logger.info("Indexed %s with fallback embeddings", file_path)
        return True

    async def index_path(self, path: str | Path) -> bool:
        """Read ``path`` from disk and index it."""
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise IndexingFailure(str(path), str(exc)) from exc
        return await self.index_file(str(path), content)

    async def remove_file(self, file_path: str) -> bool:
        """Forget a file in both stores."""
        removed = await self.symbols.remove_file(file_path)
        self.embeddings.remove_embeddings_for_file(file_path)
        return removed
